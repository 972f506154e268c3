from datetime import datetime, timedelta, timezone

import pytest
from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError

from docwatch.models.automation_status import AutomationStatus
from docwatch.services.result_store import ResultStore
from docwatch.services.types import CheckResult

T0 = datetime(2026, 3, 10, 8, 0, tzinfo=timezone.utc)


def make_result(when, **kwargs):
    values = {"timestamp": when, "search_number": "590698", "source": "manual"}
    values.update(kwargs)
    return CheckResult(**values)


def test_upsert_merges_fields(db):
    store = ResultStore(db)
    store.upsert_status(now=T0, search_number="590698")
    later = T0 + timedelta(hours=1)
    status = store.upsert_status(now=later, cached_document_url="https://embassy.example/a.pdf", cached_at=later)

    assert status.search_number == "590698"
    assert status.cached_document_url == "https://embassy.example/a.pdf"
    assert status.created_at == T0
    assert status.updated_at == later


def test_upsert_rejects_unknown_fields(db):
    with pytest.raises(ValueError):
        ResultStore(db).upsert_status(now=T0, colour="blue")


def test_last_result_round_trips_through_status(db):
    store = ResultStore(db)
    saved = store.add_result(make_result(T0, found=True, match_count=1, contexts=["x"]), now=T0)
    store.upsert_status(now=T0, search_number="590698", last_result=saved)
    status = store.get_status()
    assert status.last_result.match_count == 1
    assert status.last_result.contexts == ["x"]
    assert status.last_result.timestamp == T0


def test_recent_is_newest_first(db):
    store = ResultStore(db)
    for i in range(5):
        when = T0 + timedelta(minutes=i)
        store.add_result(make_result(when, match_count=i, found=i > 0), now=when)

    recent = store.get_recent(3)
    assert [r.match_count for r in recent] == [4, 3, 2]
    assert store.count() == 5
    assert store.get_recent(0) == []


def test_last_by_source(db):
    store = ResultStore(db)
    store.add_result(make_result(T0, source="cron"), now=T0)
    store.add_result(make_result(T0 + timedelta(minutes=1)), now=T0 + timedelta(minutes=1))
    assert store.get_last_by_source("cron").timestamp == T0
    assert store.get_last_by_source("scheduled") is None


def test_lease_is_exclusive_until_released(db):
    store = ResultStore(db)
    store.upsert_status(now=T0, search_number="590698")

    assert store.try_acquire_lease("a", now=T0, ttl_seconds=300) is True
    assert store.try_acquire_lease("b", now=T0, ttl_seconds=300) is False
    assert store.lease_holder()[0] == "a"

    store.release_lease("a")
    assert store.try_acquire_lease("b", now=T0, ttl_seconds=300) is True


def test_expired_lease_can_be_taken(db):
    store = ResultStore(db)
    store.upsert_status(now=T0, search_number="590698")
    store.try_acquire_lease("a", now=T0, ttl_seconds=300)
    assert store.try_acquire_lease("b", now=T0 + timedelta(seconds=301), ttl_seconds=300) is True


def test_lease_respects_next_check_when_due_gated(db):
    store = ResultStore(db)
    store.upsert_status(now=T0, search_number="590698", next_check_at=T0 + timedelta(hours=4))
    assert store.try_acquire_lease("a", now=T0, ttl_seconds=300, require_due=True) is False
    assert store.try_acquire_lease("a", now=T0, ttl_seconds=300) is True


def test_lease_needs_status_row(db):
    assert ResultStore(db).try_acquire_lease("a", now=T0, ttl_seconds=300) is False


def test_status_row_is_a_singleton(session_factory):
    first, second = session_factory(), session_factory()
    try:
        ResultStore(first).upsert_status(now=T0, search_number="590698")

        late = ResultStore(second)
        late._insert_status_row("111111", T0 + timedelta(hours=1))
        second.commit()
        assert second.scalar(select(func.count()).select_from(AutomationStatus)) == 1
        assert late.get_status().search_number == "590698"

        second.add(AutomationStatus(id=2, search_number="222222", created_at=T0, updated_at=T0))
        with pytest.raises(IntegrityError):
            second.commit()
    finally:
        second.rollback()
        first.close()
        second.close()
