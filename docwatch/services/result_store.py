"""
Persistence for check results (append-only check_history) and the automation_status singleton.

Status writes are upserts against the single row (id 1). A missing row is created with
insert-on-conflict-do-nothing, so two first writers end up sharing it. Given fields are merged
in, updated_at is always set, created_at only on first insert. No optimistic locking; the run
lease (try_acquire_lease) is what keeps overlapping triggers from running together.
"""
import json
import logging
from contextlib import contextmanager
from datetime import datetime, timedelta, timezone
from typing import Any, Iterator

from sqlalchemy import func, or_, select, update
from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.dialects.sqlite import insert as sqlite_insert
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from docwatch.core.errors import StoreError
from docwatch.models.automation_status import STATUS_ROW_ID, AutomationStatus
from docwatch.models.check_history import CheckHistory
from docwatch.services.types import CheckResult, Status, as_utc

logger = logging.getLogger(__name__)

STATUS_FIELDS = frozenset(
    {
        "is_running",
        "search_number",
        "cached_document_url",
        "cached_at",
        "last_check_at",
        "next_check_at",
        "last_result",
    }
)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def fallback_status(search_number: str) -> Status:
    """Default view served when the store cannot be read."""
    return Status(is_running=True, search_number=search_number)


def _row_to_result(row: CheckHistory) -> CheckResult:
    try:
        contexts = json.loads(row.contexts_json) if row.contexts_json else []
    except (TypeError, json.JSONDecodeError):
        contexts = []
    return CheckResult(
        id=row.id,
        timestamp=as_utc(row.timestamp),
        document_url=row.document_url,
        search_number=row.search_number,
        found=bool(row.found),
        match_count=row.match_count or 0,
        error=row.error,
        success=bool(row.success),
        email_sent=bool(row.email_sent),
        contexts=contexts,
        source=row.source,
        created_at=as_utc(row.created_at),
    )


def _row_to_status(row: AutomationStatus) -> Status:
    last_result = None
    if row.last_result_json:
        try:
            last_result = CheckResult.from_dict(json.loads(row.last_result_json))
        except (TypeError, ValueError):
            logger.warning("automation_status.last_result_json is not valid; ignoring")
    return Status(
        is_running=bool(row.is_running),
        search_number=row.search_number,
        cached_document_url=row.cached_document_url,
        cached_at=as_utc(row.cached_at),
        last_check_at=as_utc(row.last_check_at),
        next_check_at=as_utc(row.next_check_at),
        last_result=last_result,
        created_at=as_utc(row.created_at),
        updated_at=as_utc(row.updated_at),
    )


class ResultStore:
    """Read/write access to automation_status and check_history through one Session."""

    def __init__(self, db: Session) -> None:
        self._db = db

    @contextmanager
    def _errors(self, action: str) -> Iterator[None]:
        try:
            yield
        except SQLAlchemyError as e:
            self._db.rollback()
            logger.error("Store failed to %s: %s", action, e)
            raise StoreError(f"Database unavailable: failed to {action}") from e

    def _status_row(self) -> AutomationStatus | None:
        stmt = select(AutomationStatus).where(AutomationStatus.id == STATUS_ROW_ID)
        return self._db.scalars(stmt).first()

    def _insert_status_row(self, search_number: str, now: datetime) -> None:
        """Create the singleton row unless another session already has. Does not commit."""
        insert = pg_insert if self._db.get_bind().dialect.name == "postgresql" else sqlite_insert
        stmt = (
            insert(AutomationStatus)
            .values(
                id=STATUS_ROW_ID,
                is_running=True,
                search_number=search_number,
                created_at=now,
                updated_at=now,
            )
            .on_conflict_do_nothing(index_elements=["id"])
        )
        self._db.execute(stmt)

    # --- Status singleton ---

    def get_status(self) -> Status | None:
        with self._errors("read status"):
            row = self._status_row()
            return _row_to_status(row) if row else None

    def upsert_status(self, *, now: datetime | None = None, **fields: Any) -> Status:
        unknown = set(fields) - STATUS_FIELDS
        if unknown:
            raise ValueError(f"Unknown status fields: {sorted(unknown)}")
        now = now or _utcnow()
        with self._errors("update status"):
            row = self._status_row()
            if row is None:
                self._insert_status_row(fields.get("search_number") or "", now)
                row = self._status_row()
            for key, value in fields.items():
                if key == "last_result":
                    row.last_result_json = json.dumps(value.to_dict()) if value is not None else None
                else:
                    setattr(row, key, value)
            row.updated_at = now
            self._db.commit()
            return _row_to_status(row)

    # --- Run lease ---

    def try_acquire_lease(
        self,
        owner: str,
        *,
        now: datetime,
        ttl_seconds: int,
        require_due: bool = False,
    ) -> bool:
        """
        Claim the run lease with a single conditional UPDATE. Succeeds only when no live lease
        exists and, with require_due, next_check_at is unset or has passed.
        """
        conditions = [or_(AutomationStatus.lease_expires_at.is_(None), AutomationStatus.lease_expires_at <= now)]
        if require_due:
            conditions.append(
                or_(AutomationStatus.next_check_at.is_(None), AutomationStatus.next_check_at <= now)
            )
        with self._errors("acquire run lease"):
            row = self._status_row()
            if row is None:
                return False
            stmt = (
                update(AutomationStatus)
                .where(AutomationStatus.id == row.id, *conditions)
                .values(lease_owner=owner, lease_expires_at=now + timedelta(seconds=ttl_seconds))
                .execution_options(synchronize_session=False)
            )
            acquired = self._db.execute(stmt).rowcount == 1
            self._db.commit()
            self._db.expire_all()
            return acquired

    def release_lease(self, owner: str) -> None:
        with self._errors("release run lease"):
            self._db.execute(
                update(AutomationStatus)
                .where(AutomationStatus.lease_owner == owner)
                .values(lease_owner=None, lease_expires_at=None)
                .execution_options(synchronize_session=False)
            )
            self._db.commit()
            self._db.expire_all()

    def lease_holder(self) -> tuple[str | None, datetime | None]:
        with self._errors("read run lease"):
            row = self._status_row()
            if row is None:
                return None, None
            return row.lease_owner, as_utc(row.lease_expires_at)

    # --- History ---

    def add_result(self, result: CheckResult, *, now: datetime | None = None) -> CheckResult:
        now = now or _utcnow()
        row = CheckHistory(
            timestamp=result.timestamp,
            document_url=result.document_url,
            search_number=result.search_number,
            found=result.found,
            match_count=result.match_count,
            error=result.error,
            success=result.success,
            email_sent=result.email_sent,
            contexts_json=json.dumps(result.contexts) if result.contexts else None,
            source=result.source,
            created_at=now,
        )
        with self._errors("store check result"):
            self._db.add(row)
            self._db.commit()
            return _row_to_result(row)

    def get_recent(self, n: int = 10) -> list[CheckResult]:
        """Most recent first, at most n."""
        stmt = (
            select(CheckHistory)
            .order_by(CheckHistory.created_at.desc(), CheckHistory.id.desc())
            .limit(max(0, n))
        )
        with self._errors("read check history"):
            return [_row_to_result(r) for r in self._db.scalars(stmt).all()]

    def count(self) -> int:
        with self._errors("count check history"):
            return self._db.scalar(select(func.count()).select_from(CheckHistory)) or 0

    def get_last_by_source(self, source: str) -> CheckResult | None:
        stmt = (
            select(CheckHistory)
            .where(CheckHistory.source == source)
            .order_by(CheckHistory.created_at.desc(), CheckHistory.id.desc())
            .limit(1)
        )
        with self._errors("read check history"):
            row = self._db.scalars(stmt).first()
            return _row_to_result(row) if row else None
