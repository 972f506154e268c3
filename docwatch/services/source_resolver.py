"""
Find the current document link on the source page.

Single attempt, no retries: the orchestrator decides whether to fall back to the cached URL.
"""
import logging
from urllib.parse import urljoin, urlsplit

import httpx
from bs4 import BeautifulSoup

from docwatch.core.constants import BROWSER_HEADERS
from docwatch.core.errors import FetchError, NotFoundError

logger = logging.getLogger(__name__)


def normalize_link(page_url: str, href: str) -> str:
    """
    Absolute links pass through; root-relative links get the page origin; anything else
    is resolved against the page path.
    """
    href = href.strip()
    if href.startswith(("http://", "https://")):
        return href
    parts = urlsplit(page_url)
    origin = f"{parts.scheme}://{parts.netloc}"
    if href.startswith("/") and not href.startswith("//"):
        return f"{origin}{href}"
    return urljoin(page_url, href)


def find_link(html: str, link_title: str) -> str:
    """Return the raw href of the element whose title attribute equals link_title."""
    soup = BeautifulSoup(html, "html.parser")
    matches = soup.find_all(attrs={"title": link_title})
    if not matches:
        raise NotFoundError(f"Could not find element with title '{link_title}'")
    if len(matches) > 1:
        logger.warning("Found %s elements titled %r; using the first", len(matches), link_title)
    href = matches[0].get("href")
    if not href or not str(href).strip():
        raise NotFoundError("Found element but no href attribute")
    return str(href)


def fetch_page(page_url: str, *, client: httpx.Client | None = None, timeout: float = 30.0) -> str:
    own_client = client is None
    c = client or httpx.Client(timeout=timeout, follow_redirects=True)
    try:
        r = c.get(page_url, headers=BROWSER_HEADERS)
    except httpx.HTTPError as e:
        raise FetchError(f"Failed to fetch webpage: {e}") from e
    finally:
        if own_client:
            c.close()
    if not r.is_success:
        raise FetchError(f"Failed to fetch webpage: {r.status_code} {r.reason_phrase}")
    return r.text


def resolve(
    page_url: str,
    link_title: str,
    *,
    client: httpx.Client | None = None,
    timeout: float = 30.0,
) -> str:
    """Fetch page_url and return the absolute URL of the titled document link."""
    html = fetch_page(page_url, client=client, timeout=timeout)
    href = find_link(html, link_title)
    document_url = normalize_link(page_url, href)
    logger.info("Resolved document URL %s (href=%s)", document_url, href)
    return document_url
