"""
Automation API: status read surface and the manual trigger.

GET returns the status singleton with recent history; if the store is down it serves the
fallback view instead of failing. POST actions: check-now (run one check) and store-result
(record a result computed elsewhere).
"""
import logging
from datetime import datetime
from typing import Any, Literal

import httpx
from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse
from pydantic import BaseModel, ConfigDict, Field
from sqlalchemy.orm import Session

from docwatch.api.dependencies import get_config, get_http_client, get_notifier, get_settings, get_text_extractor
from docwatch.config import Settings
from docwatch.core.check_config import CheckConfig
from docwatch.core.constants import HISTORY_READ_MAX, SOURCE_MANUAL
from docwatch.core.errors import StoreError
from docwatch.db.session import get_db
from docwatch.services.document_matcher import TextExtractor
from docwatch.services.email_notify import Notifier
from docwatch.services.orchestrator import perform_check, store_external_result
from docwatch.services.result_store import ResultStore, fallback_status

router = APIRouter()
logger = logging.getLogger(__name__)

ACTION_CHECK_NOW = "check-now"
ACTION_STORE_RESULT = "store-result"


class StoredResultBody(BaseModel):
    """A check result computed elsewhere. found, emailSent and success are re-derived on store."""

    model_config = ConfigDict(populate_by_name=True)

    search_number: str = Field("", alias="searchNumber")
    source: Literal["manual", "scheduled", "cron"]
    timestamp: datetime | None = None
    document_url: str | None = Field(None, alias="documentUrl")
    found: bool = False
    match_count: int = Field(0, alias="matchCount", ge=0)
    error: str | None = None
    success: bool = True
    email_sent: bool = Field(False, alias="emailSent")
    contexts: list[str] = Field(default_factory=list)


class AutomationRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    action: str
    result: StoredResultBody | None = None
    search_number: str | None = Field(None, alias="searchNumber")


@router.get("/automation")
def get_automation_status(
    db: Session = Depends(get_db),
    config: CheckConfig = Depends(get_config),
    app_settings: Settings = Depends(get_settings),
) -> dict[str, Any]:
    """Current monitoring state plus the most recent checks (newest first)."""
    store = ResultStore(db)
    limit = max(0, min(app_settings.history_limit, HISTORY_READ_MAX))
    try:
        status = store.get_status() or fallback_status(config.search_number)
        history = store.get_recent(limit)
        total = store.count()
    except StoreError as e:
        logger.warning("Status read degraded to fallback: %s", e.message)
        fallback = fallback_status(config.search_number)
        return {
            **_status_body(fallback.to_dict(), [], 0),
            "degraded": True,
            "error": e.message,
        }
    return _status_body(status.to_dict(), [r.to_dict() for r in history], total)


def _status_body(status: dict[str, Any], history: list[dict[str, Any]], total: int) -> dict[str, Any]:
    return {
        "isRunning": status["isRunning"],
        "searchNumber": status["searchNumber"],
        "lastCheck": status["lastCheck"],
        "nextCheck": status["nextCheck"],
        "lastResult": status["lastResult"],
        "cachedDocumentUrl": status["cachedDocumentUrl"],
        "checkHistory": history,
        "totalChecks": total,
    }


@router.post("/automation")
def automation_action(
    body: AutomationRequest,
    db: Session = Depends(get_db),
    config: CheckConfig = Depends(get_config),
    notifier: Notifier = Depends(get_notifier),
    client: httpx.Client = Depends(get_http_client),
    extract: TextExtractor | None = Depends(get_text_extractor),
):
    if body.action == ACTION_CHECK_NOW:
        outcome = perform_check(
            db,
            config,
            source=SOURCE_MANUAL,
            search_number=body.search_number,
            client=client,
            notifier=notifier,
            extract=extract,
        )
        if outcome.skipped:
            return JSONResponse(
                status_code=409,
                content={"success": False, "error": "A check is already in progress", **outcome.to_dict()},
            )
        return {
            "success": True,
            "message": "Manual check completed",
            "result": outcome.result.to_dict(),
            "nextCheck": outcome.to_dict()["nextCheck"],
        }

    if body.action == ACTION_STORE_RESULT:
        if body.result is None:
            return JSONResponse(status_code=400, content={"success": False, "error": "result is required"})
        try:
            saved = store_external_result(db, body.result.model_dump(by_alias=True, mode="json"))
        except ValueError as e:
            return JSONResponse(status_code=400, content={"success": False, "error": str(e)})
        return {"success": True, "message": "Result stored", "result": saved.to_dict()}

    return JSONResponse(
        status_code=400,
        content={"success": False, "error": f"Invalid action. Use '{ACTION_CHECK_NOW}' or '{ACTION_STORE_RESULT}'"},
    )
