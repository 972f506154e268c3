"""Domain types shared by the store, orchestrator and routes. Wire shape is camelCase."""
from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any


def as_utc(value: datetime | None) -> datetime | None:
    """SQLite returns naive datetimes; everything stored is UTC."""
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def iso(value: datetime | None) -> str | None:
    return value.isoformat() if value is not None else None


def parse_iso(value: Any) -> datetime | None:
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        return as_utc(value)
    return as_utc(datetime.fromisoformat(str(value).replace("Z", "+00:00")))


@dataclass
class CheckResult:
    """One pipeline run. found == (match_count > 0); email_sent implies found."""

    timestamp: datetime
    search_number: str
    source: str
    document_url: str | None = None
    found: bool = False
    match_count: int = 0
    error: str | None = None
    success: bool = True
    email_sent: bool = False
    contexts: list[str] = field(default_factory=list)
    id: int | None = None
    created_at: datetime | None = None

    @classmethod
    def failed(
        cls,
        *,
        timestamp: datetime,
        search_number: str,
        source: str,
        error: str,
        document_url: str | None = None,
    ) -> "CheckResult":
        return cls(
            timestamp=timestamp,
            search_number=search_number,
            source=source,
            document_url=document_url,
            found=False,
            match_count=0,
            error=error,
            success=False,
            email_sent=False,
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "timestamp": iso(self.timestamp),
            "documentUrl": self.document_url,
            "searchNumber": self.search_number,
            "found": self.found,
            "matchCount": self.match_count,
            "error": self.error,
            "success": self.success,
            "emailSent": self.email_sent,
            "contexts": list(self.contexts),
            "source": self.source,
            "createdAt": iso(self.created_at),
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "CheckResult":
        return cls(
            id=data.get("id"),
            timestamp=parse_iso(data.get("timestamp")),
            document_url=data.get("documentUrl"),
            search_number=data.get("searchNumber") or "",
            found=bool(data.get("found")),
            match_count=int(data.get("matchCount") or 0),
            error=data.get("error"),
            success=bool(data.get("success")),
            email_sent=bool(data.get("emailSent")),
            contexts=list(data.get("contexts") or []),
            source=data.get("source") or "",
            created_at=parse_iso(data.get("createdAt")),
        )


@dataclass
class Status:
    """The singleton monitoring state as read by API consumers."""

    is_running: bool
    search_number: str
    cached_document_url: str | None = None
    cached_at: datetime | None = None
    last_check_at: datetime | None = None
    next_check_at: datetime | None = None
    last_result: CheckResult | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "isRunning": self.is_running,
            "searchNumber": self.search_number,
            "cachedDocumentUrl": self.cached_document_url,
            "cachedAt": iso(self.cached_at),
            "lastCheck": iso(self.last_check_at),
            "nextCheck": iso(self.next_check_at),
            "lastResult": self.last_result.to_dict() if self.last_result else None,
            "createdAt": iso(self.created_at),
            "updatedAt": iso(self.updated_at),
        }
