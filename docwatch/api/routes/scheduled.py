"""
Time-gated triggers: the poll endpoint (scheduled-check) and the external cron endpoint.

Both require a bearer secret, or the configured trusted-scheduler header, and only run when
the stored next_check_at has passed. The run lease makes overlapping calls skip instead of
double-running.
"""
import hmac
import logging
from typing import Any

import httpx
from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse
from sqlalchemy.orm import Session

from docwatch.api.dependencies import get_config, get_http_client, get_notifier, get_settings, get_text_extractor
from docwatch.config import Settings
from docwatch.core.check_config import CheckConfig
from docwatch.core.constants import SOURCE_CRON, SOURCE_SCHEDULED
from docwatch.db.session import get_db
from docwatch.services.document_matcher import TextExtractor
from docwatch.services.email_notify import Notifier
from docwatch.services.orchestrator import SKIP_NOT_DUE, perform_check

router = APIRouter()
logger = logging.getLogger(__name__)


def is_authorized(request: Request, secret: str, app_settings: Settings) -> bool:
    header = app_settings.trusted_scheduler_header
    if header and request.headers.get(header):
        return True
    if not secret:
        return False
    supplied = request.headers.get("authorization", "")
    return hmac.compare_digest(supplied.encode(), f"Bearer {secret}".encode())


def _unauthorized() -> JSONResponse:
    return JSONResponse(status_code=401, content={"success": False, "error": "Unauthorized"})


def _run_due_check(
    db: Session,
    config: CheckConfig,
    *,
    source: str,
    client: httpx.Client,
    notifier: Notifier,
    extract: TextExtractor | None,
) -> dict[str, Any]:
    outcome = perform_check(
        db,
        config,
        source=source,
        require_due=True,
        client=client,
        notifier=notifier,
        extract=extract,
    )
    body = outcome.to_dict()
    if outcome.skipped:
        message = "Not yet time for check" if outcome.reason == SKIP_NOT_DUE else "Check already in progress"
        return {
            "success": True,
            "message": message,
            "reason": outcome.reason,
            "nextCheck": body["nextCheck"],
            "minutesUntilNext": body["minutesUntilNext"],
        }
    result = outcome.result
    response = {
        "success": result.success,
        "message": f"{source.capitalize()} check completed",
        "result": result.to_dict(),
        "nextCheck": body["nextCheck"],
    }
    if not result.success:
        response["error"] = result.error
    return response


@router.get("/scheduled-check")
def scheduled_check(
    request: Request,
    db: Session = Depends(get_db),
    config: CheckConfig = Depends(get_config),
    app_settings: Settings = Depends(get_settings),
    notifier: Notifier = Depends(get_notifier),
    client: httpx.Client = Depends(get_http_client),
    extract: TextExtractor | None = Depends(get_text_extractor),
):
    """Poll endpoint: runs one check when due, otherwise reports the countdown."""
    if not is_authorized(request, app_settings.scheduled_check_secret, app_settings):
        return _unauthorized()
    logger.info("Scheduled check triggered")
    return _run_due_check(db, config, source=SOURCE_SCHEDULED, client=client, notifier=notifier, extract=extract)


@router.get("/cron/check-pdf")
def cron_check(
    request: Request,
    db: Session = Depends(get_db),
    config: CheckConfig = Depends(get_config),
    app_settings: Settings = Depends(get_settings),
    notifier: Notifier = Depends(get_notifier),
    client: httpx.Client = Depends(get_http_client),
    extract: TextExtractor | None = Depends(get_text_extractor),
):
    """External cron endpoint (Authorization: Bearer CRON_SECRET)."""
    if not is_authorized(request, app_settings.cron_secret, app_settings):
        return _unauthorized()
    logger.info("Cron check triggered")
    return _run_due_check(db, config, source=SOURCE_CRON, client=client, notifier=notifier, extract=extract)
