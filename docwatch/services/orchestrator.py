"""
Perform one check: resolve the document URL (or reuse the cache), search the document,
notify when found, persist exactly one CheckResult and the updated status.

Every trigger (manual API call, time-gated poll, cron endpoint, in-process scheduler) goes
through perform_check. A run first claims the lease on the status row; a second trigger that
arrives while a run holds it, or before the next slot when due-gated, is skipped.
"""
import logging
import uuid
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any

import httpx
from sqlalchemy.orm import Session

from docwatch.core.check_config import CheckConfig
from docwatch.core.constants import CHECK_SOURCES, MAX_CONTEXTS
from docwatch.core.errors import FetchError, NotFoundError, ParseError, StoreError
from docwatch.services import document_matcher, source_resolver
from docwatch.services.document_matcher import TextExtractor
from docwatch.services.email_notify import ErrorEvent, FoundEvent, Notifier
from docwatch.services.result_store import ResultStore
from docwatch.services.schedule import minutes_until, next_slot_utc
from docwatch.services.types import CheckResult, Status, as_utc, iso

logger = logging.getLogger(__name__)

SKIP_NOT_DUE = "not_due"
SKIP_IN_PROGRESS = "in_progress"


@dataclass
class CheckOutcome:
    result: CheckResult | None = None
    skipped: bool = False
    reason: str | None = None
    next_check_at: datetime | None = None
    minutes_until_next: int | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "skipped": self.skipped,
            "reason": self.reason,
            "result": self.result.to_dict() if self.result else None,
            "nextCheck": iso(self.next_check_at),
            "minutesUntilNext": self.minutes_until_next,
        }


def ensure_status(store: ResultStore, config: CheckConfig, now: datetime) -> Status:
    """Load the status singleton, creating it on first use. A fresh row is due immediately."""
    status = store.get_status()
    if status is None:
        logger.warning("No automation status found, initializing")
        status = store.upsert_status(now=now, is_running=True, search_number=config.search_number)
    return status


def _resolve_document_url(
    status: Status,
    config: CheckConfig,
    client: httpx.Client | None,
) -> tuple[str, bool]:
    """(document_url, refreshed). refreshed is True when the URL came from a live scrape."""
    cached = status.cached_document_url
    if not config.scraping_allowed:
        if cached:
            logger.info("Scraping disabled; using cached document URL %s", cached)
            return cached, False
        raise NotFoundError("Scraping is disabled in this environment and no document URL is cached")
    try:
        url = source_resolver.resolve(
            config.source_page_url,
            config.source_link_title,
            client=client,
            timeout=config.http_timeout_seconds,
        )
        return url, True
    except (FetchError, NotFoundError) as e:
        if not cached:
            raise
        logger.warning("Source resolution failed (%s); falling back to cached URL %s", e.message, cached)
        return cached, False


def _skipped(store: ResultStore, now: datetime, require_due: bool) -> CheckOutcome:
    status = store.get_status()
    next_check = status.next_check_at if status else None
    if require_due and next_check is not None and now < next_check:
        minutes = minutes_until(next_check, now)
        logger.info("Next check scheduled in %s minutes", minutes)
        return CheckOutcome(
            skipped=True,
            reason=SKIP_NOT_DUE,
            next_check_at=next_check,
            minutes_until_next=minutes,
        )
    logger.info("Check already in progress; skipping")
    return CheckOutcome(skipped=True, reason=SKIP_IN_PROGRESS, next_check_at=next_check)


def perform_check(
    db: Session,
    config: CheckConfig,
    *,
    source: str,
    search_number: str | None = None,
    require_due: bool = False,
    client: httpx.Client | None = None,
    notifier: Notifier | None = None,
    extract: TextExtractor | None = None,
    now: datetime | None = None,
) -> CheckOutcome:
    """
    Run one check. Resolution/matching failures become a failed CheckResult; notification
    failures only leave email_sent False. StoreError propagates: the outcome may be lost.
    """
    if source not in CHECK_SOURCES:
        raise ValueError(f"Unknown check source {source!r}")
    now = as_utc(now) or datetime.now(timezone.utc)
    store = ResultStore(db)
    status = ensure_status(store, config, now)

    owner = uuid.uuid4().hex
    if not store.try_acquire_lease(owner, now=now, ttl_seconds=config.lease_seconds, require_due=require_due):
        return _skipped(store, now, require_due)

    try:
        target = (search_number or "").strip() or status.search_number or config.search_number
        logger.info("Performing %s check for %s", source, target)
        result, cache_url = _run_pipeline(status, config, target, source, now, client, notifier, extract)

        saved = store.add_result(result, now=now)
        next_check = next_slot_utc(now, config.check_hours, config.check_timezone)
        fields: dict[str, Any] = {
            "is_running": True,
            "search_number": target,
            "last_check_at": now,
            "next_check_at": next_check,
            "last_result": saved,
        }
        if cache_url:
            fields["cached_document_url"] = cache_url
            fields["cached_at"] = now
        store.upsert_status(now=now, **fields)
        logger.info("Result saved (found=%s). Next check scheduled for %s", saved.found, next_check.isoformat())
        return CheckOutcome(result=saved, next_check_at=next_check, minutes_until_next=minutes_until(next_check, now))
    finally:
        try:
            store.release_lease(owner)
        except StoreError:
            logger.warning("Could not release run lease %s; it expires in %ss", owner, config.lease_seconds)


def _run_pipeline(
    status: Status,
    config: CheckConfig,
    target: str,
    source: str,
    now: datetime,
    client: httpx.Client | None,
    notifier: Notifier | None,
    extract: TextExtractor | None,
) -> tuple[CheckResult, str | None]:
    """(result, URL to cache or None). Never raises for fetch/parse/notify failures."""
    try:
        document_url, refreshed = _resolve_document_url(status, config, client)
    except (FetchError, NotFoundError) as e:
        logger.error("Failed to resolve document URL: %s", e.message)
        result = CheckResult.failed(
            timestamp=now,
            search_number=target,
            source=source,
            error=f"Failed to resolve document URL: {e.message}",
        )
        _notify_error(result, config, notifier)
        return result, None

    try:
        match = document_matcher.check(
            document_url,
            target,
            client=client,
            extract=extract,
            context_limit=config.context_limit,
            timeout=config.http_timeout_seconds,
        )
    except (FetchError, ParseError) as e:
        logger.error("Failed to search document %s: %s", document_url, e.message)
        result = CheckResult.failed(
            timestamp=now,
            search_number=target,
            source=source,
            error=e.message,
            document_url=document_url,
        )
        _notify_error(result, config, notifier)
        # A URL that resolved but failed to download is still the current link
        return result, document_url if refreshed else None

    result = CheckResult(
        timestamp=now,
        document_url=document_url,
        search_number=target,
        found=match.found,
        match_count=match.match_count,
        contexts=match.contexts,
        success=True,
        email_sent=False,
        source=source,
    )
    logger.info("Check completed. Number %s found: %s", target, result.found)
    if result.found:
        sent = (notifier or Notifier()).notify(
            FoundEvent(
                search_number=target,
                match_count=match.match_count,
                document_url=document_url,
                timestamp=now,
                contexts=match.contexts,
            )
        )
        result.email_sent = sent.success
    return result, document_url if refreshed else None


def _notify_error(result: CheckResult, config: CheckConfig, notifier: Notifier | None) -> None:
    """Optional error email. Does not touch email_sent, which tracks found notifications only."""
    if not config.notify_on_error:
        return
    (notifier or Notifier()).notify(
        ErrorEvent(search_number=result.search_number, error=result.error or "", timestamp=result.timestamp)
    )


def store_external_result(db: Session, payload: dict[str, Any], *, now: datetime | None = None) -> CheckResult:
    """
    Record a result computed elsewhere (the store-result action). Invariants are re-applied:
    found follows match_count, email_sent requires found, success follows error.
    """
    now = as_utc(now) or datetime.now(timezone.utc)
    result = CheckResult.from_dict(payload)
    if result.source not in CHECK_SOURCES:
        raise ValueError(f"source must be one of {', '.join(CHECK_SOURCES)}")
    if result.match_count < 0:
        raise ValueError("matchCount must be >= 0")
    result.timestamp = result.timestamp or now
    result.found = result.match_count > 0
    result.email_sent = result.email_sent and result.found
    result.success = not result.error
    result.contexts = result.contexts[:MAX_CONTEXTS]
    if not result.search_number:
        raise ValueError("searchNumber is required")

    store = ResultStore(db)
    fields: dict[str, Any] = {}
    if store.get_status() is None:
        fields["search_number"] = result.search_number
    saved = store.add_result(result, now=now)
    store.upsert_status(now=now, last_check_at=saved.timestamp, last_result=saved, **fields)
    return saved
