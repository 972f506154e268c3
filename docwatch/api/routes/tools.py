"""
Single-step endpoints behind the check pipeline: resolve the document link, search a PDF
ad hoc, read/set the cached document URL, and send notification or test emails.
None of these record a CheckResult.
"""
import logging
from datetime import datetime, timezone
from typing import Any, Literal
from urllib.parse import urlsplit

import httpx
from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse
from pydantic import BaseModel, ConfigDict, Field
from sqlalchemy.orm import Session

from docwatch.api.dependencies import get_config, get_http_client, get_notifier, get_text_extractor
from docwatch.core.check_config import CheckConfig
from docwatch.db.session import get_db
from docwatch.services import document_matcher, source_resolver
from docwatch.services.document_matcher import TextExtractor
from docwatch.services.email_notify import ErrorEvent, FoundEvent, Notifier
from docwatch.services.orchestrator import ensure_status
from docwatch.services.result_store import ResultStore
from docwatch.services.types import iso

router = APIRouter()
logger = logging.getLogger(__name__)


def _is_http_url(value: str) -> bool:
    parts = urlsplit(value or "")
    return parts.scheme in ("http", "https") and bool(parts.netloc)


def _bad_request(error: str) -> JSONResponse:
    return JSONResponse(status_code=400, content={"success": False, "error": error})


# --- Source page ---


class ResolveRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    custom_url: str = Field(..., alias="customUrl")


@router.get("/source")
def resolve_default_source(
    config: CheckConfig = Depends(get_config),
    client: httpx.Client = Depends(get_http_client),
) -> dict[str, Any]:
    """Scrape the configured page and return the document URL it links to."""
    url = source_resolver.resolve(config.source_page_url, config.source_link_title, client=client)
    return {"success": True, "documentUrl": url, "message": "Successfully extracted document URL"}


@router.post("/source")
def resolve_custom_source(
    body: ResolveRequest,
    config: CheckConfig = Depends(get_config),
    client: httpx.Client = Depends(get_http_client),
):
    if not _is_http_url(body.custom_url):
        return _bad_request("Invalid URL provided")
    url = source_resolver.resolve(body.custom_url, config.source_link_title, client=client)
    return {"success": True, "documentUrl": url, "message": "Successfully extracted document URL"}


# --- Ad hoc PDF search ---


class PdfCheckRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    pdf_url: str = Field("", alias="pdfUrl")
    search_number: str = Field("", alias="searchNumber")


@router.post("/pdf-checker")
def pdf_checker(
    body: PdfCheckRequest,
    config: CheckConfig = Depends(get_config),
    client: httpx.Client = Depends(get_http_client),
    extract: TextExtractor | None = Depends(get_text_extractor),
):
    if not body.pdf_url:
        return _bad_request("No PDF URL provided")
    if not body.search_number.strip():
        return _bad_request("No search number provided")
    if not _is_http_url(body.pdf_url):
        return _bad_request("Invalid PDF URL provided")
    match = document_matcher.check(
        body.pdf_url,
        body.search_number.strip(),
        client=client,
        extract=extract,
        context_limit=config.context_limit,
    )
    return match.to_dict()


# --- Cached document URL ---


class PdfUrlRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    pdf_url: str = Field("", alias="pdfUrl")


@router.get("/pdf-url")
def get_cached_url(db: Session = Depends(get_db)) -> dict[str, Any]:
    status = ResultStore(db).get_status()
    if status is None or not status.cached_document_url:
        return {"success": False, "error": "No document URL stored. Set it with POST /api/pdf-url."}
    return {"success": True, "documentUrl": status.cached_document_url, "lastUpdated": iso(status.cached_at)}


@router.post("/pdf-url")
def set_cached_url(
    body: PdfUrlRequest,
    db: Session = Depends(get_db),
    config: CheckConfig = Depends(get_config),
):
    """Store the document URL by hand, for environments where the source page cannot be scraped."""
    if not _is_http_url(body.pdf_url):
        return _bad_request("Please provide a valid PDF URL")
    now = datetime.now(timezone.utc)
    store = ResultStore(db)
    ensure_status(store, config, now)
    store.upsert_status(now=now, cached_document_url=body.pdf_url, cached_at=now)
    logger.info("Cached document URL set manually: %s", body.pdf_url)
    return {"success": True, "message": "Document URL updated successfully", "documentUrl": body.pdf_url}


# --- Email ---


class SendEmailRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    type: Literal["found", "error"]
    search_number: str = Field(..., alias="searchNumber")
    pdf_url: str = Field("", alias="pdfUrl")
    match_count: int = Field(0, alias="matchCount", ge=0)
    timestamp: datetime | None = None
    contexts: list[str] = Field(default_factory=list, max_length=10)
    error: str | None = None


@router.post("/send-email")
def send_email(body: SendEmailRequest, notifier: Notifier = Depends(get_notifier)) -> dict[str, Any]:
    """Send one found/error notification. Configuration and delivery errors come back as JSON errors."""
    when = body.timestamp or datetime.now(timezone.utc)
    if body.type == "found":
        event = FoundEvent(
            search_number=body.search_number,
            match_count=body.match_count,
            document_url=body.pdf_url,
            timestamp=when,
            contexts=body.contexts,
        )
    else:
        event = ErrorEvent(search_number=body.search_number, error=body.error or "", timestamp=when)
    message_id = notifier.send(event)
    return {"success": True, "message": "Email sent successfully", "type": body.type, "messageId": message_id}


@router.get("/send-email")
def email_info(notifier: Notifier = Depends(get_notifier)) -> dict[str, Any]:
    return {"message": "Email notification service", "configured": notifier.is_configured()}


@router.post("/test-email")
def test_email(notifier: Notifier = Depends(get_notifier)) -> dict[str, Any]:
    result = notifier.send_test_email()
    return {
        "success": True,
        "message": "Test email sent successfully",
        "messageId": result.message_id,
        "timestamp": datetime.now(timezone.utc).isoformat(),
    }
