"""
Download the monitored PDF, extract its text and count occurrences of the search number.

The search number is plain text from config or a form, never a pattern: metacharacters are
escaped and matching is case-insensitive.
"""
import io
import logging
import re
from dataclasses import dataclass, field
from typing import Any, Callable

import httpx
import pdfplumber

from docwatch.core.constants import CONTEXT_JOINER, MAX_CONTEXTS, PDF_ACCEPT_HEADERS
from docwatch.core.errors import FetchError, ParseError

logger = logging.getLogger(__name__)

# (document bytes) -> (text, page count or None)
TextExtractor = Callable[[bytes], tuple[str, int | None]]


@dataclass
class MatchResult:
    document_url: str
    search_number: str
    match_count: int = 0
    contexts: list[str] = field(default_factory=list)
    file_size: int = 0
    total_pages: int | None = None

    @property
    def found(self) -> bool:
        return self.match_count > 0

    def to_dict(self) -> dict[str, Any]:
        return {
            "found": self.found,
            "searchNumber": self.search_number,
            "matchCount": self.match_count,
            "contexts": list(self.contexts),
            "documentUrl": self.document_url,
            "fileSize": self.file_size,
            "totalPages": self.total_pages,
        }


def extract_pdf_text(data: bytes) -> tuple[str, int | None]:
    """Full text of every page, one page per block, joined by newlines."""
    try:
        with pdfplumber.open(io.BytesIO(data)) as pdf:
            pages = [page.extract_text() or "" for page in pdf.pages]
    except Exception as e:
        raise ParseError(f"Failed to extract PDF text: {e}") from e
    return "\n".join(pages), len(pages)


def search_pattern(target: str) -> re.Pattern:
    return re.compile(re.escape(target), re.IGNORECASE)


def count_matches(text: str, target: str) -> int:
    """Non-overlapping, case-insensitive literal occurrences of target."""
    if not target:
        return 0
    return len(search_pattern(target).findall(text))


def extract_contexts(text: str, target: str, limit: int = MAX_CONTEXTS) -> list[str]:
    """
    One entry per matching line: previous, matching and next line, trimmed, empties skipped,
    joined with ' ... '. At most limit entries.
    """
    if not target:
        return []
    limit = max(0, min(limit, MAX_CONTEXTS))
    pattern = search_pattern(target)
    lines = text.split("\n")
    contexts: list[str] = []
    for index, line in enumerate(lines):
        if len(contexts) >= limit:
            break
        if not pattern.search(line):
            continue
        window = [
            lines[index - 1].strip() if index > 0 else "",
            line.strip(),
            lines[index + 1].strip() if index + 1 < len(lines) else "",
        ]
        contexts.append(CONTEXT_JOINER.join(part for part in window if part))
    return contexts


def _looks_like_pdf(response: httpx.Response) -> bool:
    content_type = response.headers.get("content-type", "")
    return "application/pdf" in content_type.lower() or response.content.startswith(b"%PDF")


def fetch_document(document_url: str, *, client: httpx.Client | None = None, timeout: float = 30.0) -> bytes:
    own_client = client is None
    c = client or httpx.Client(timeout=timeout, follow_redirects=True)
    try:
        r = c.get(document_url, headers=PDF_ACCEPT_HEADERS)
    except httpx.HTTPError as e:
        raise FetchError(f"Failed to fetch PDF from URL: {e}") from e
    finally:
        if own_client:
            c.close()
    if not r.is_success:
        raise FetchError(f"Failed to fetch PDF from URL: {r.status_code} {r.reason_phrase}")
    if not _looks_like_pdf(r):
        raise ParseError("URL does not point to a PDF file")
    return r.content


def check(
    document_url: str,
    target: str,
    *,
    client: httpx.Client | None = None,
    extract: TextExtractor | None = None,
    context_limit: int = MAX_CONTEXTS,
    timeout: float = 30.0,
) -> MatchResult:
    """Fetch the document and search it for target."""
    data = fetch_document(document_url, client=client, timeout=timeout)
    text, total_pages = (extract or extract_pdf_text)(data)
    result = MatchResult(
        document_url=document_url,
        search_number=target,
        match_count=count_matches(text, target),
        contexts=extract_contexts(text, target, context_limit),
        file_size=len(data),
        total_pages=total_pages,
    )
    logger.info(
        "Searched %s (%s bytes, %s pages) for %s: %s matches",
        document_url,
        result.file_size,
        total_pages if total_pages is not None else "?",
        target,
        result.match_count,
    )
    return result
