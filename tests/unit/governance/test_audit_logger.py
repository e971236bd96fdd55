"""Governance tests: audit immutability, field completeness, retry and dead-lettering."""

import asyncio
import logging
from datetime import datetime, timezone
from unittest.mock import AsyncMock

import pytest

from blindstore.governance.audit_logger import AuditLogger
from blindstore.governance.audit_models import AuditEvent, AuditEventType

FIXED_NOW = datetime(2024, 5, 1, 12, 0, tzinfo=timezone.utc)


@pytest.fixture
def audit_repository():
    repo = AsyncMock()
    repo.save = AsyncMock(return_value=None)
    return repo


@pytest.fixture
async def audit_logger(audit_repository):
    logger = AuditLogger(
        repository=audit_repository,
        retry_backoff_seconds=0,
        max_attempts=3,
        clock=lambda: FIXED_NOW,
    )
    yield logger
    await logger.close()


async def test_audit_immutability(audit_logger, audit_repository):
    """Audit event must not allow mutation; stored via repository."""
    await audit_logger.record(
        AuditEvent(
            type=AuditEventType.WRITE,
            success=True,
            host="10.0.0.1",
            note_id="0123456789abcdef",
            size_bytes=42,
            expire_window_days=30,
        )
    )
    await audit_logger.flush()
    assert audit_repository.save.await_count == 1
    event = audit_repository.save.call_args[0][0]
    assert isinstance(event, AuditEvent)
    assert event.note_id == "0123456789abcdef"
    assert event.size_bytes == 42
    with pytest.raises(AttributeError):
        event.success = False  # type: ignore[misc]


async def test_audit_fields_completeness(audit_logger, audit_repository):
    """Recorded events are stamped in UTC by the logger, overriding any caller value."""
    await audit_logger.record(
        AuditEvent(
            type=AuditEventType.READ,
            success=False,
            host="10.0.0.1",
            note_id="NaN",
            error="Invalid note id",
            timestamp=datetime(1999, 1, 1, tzinfo=timezone.utc),
        )
    )
    await audit_logger.flush()
    event = audit_repository.save.call_args[0][0]
    assert event.timestamp == FIXED_NOW
    d = event.to_dict()
    assert d["type"] == "read"
    assert d["timestamp"] == FIXED_NOW.isoformat()
    assert d["error"] == "Invalid note id"
    assert set(d) >= {"host", "note_id", "user_id", "user_plugin_version", "size_bytes"}


async def test_record_does_not_wait_for_storage(audit_logger, audit_repository):
    await audit_logger.record(AuditEvent(type=AuditEventType.WRITE, success=True))
    assert audit_logger.pending == 1
    await audit_logger.flush()
    assert audit_logger.pending == 0


async def test_transient_failure_is_retried(audit_logger, audit_repository):
    audit_repository.save.side_effect = [ConnectionError("db down"), None]
    await audit_logger.record(AuditEvent(type=AuditEventType.PURGE, success=True, note_id="a"))
    await audit_logger.flush()
    assert audit_repository.save.await_count == 2
    assert audit_logger.dead_lettered == 0


async def test_exhausted_event_is_dead_lettered_to_log(audit_logger, audit_repository, caplog):
    audit_repository.save.side_effect = ConnectionError("db down")
    with caplog.at_level(logging.ERROR, logger="blindstore.governance.audit_logger"):
        await audit_logger.record(AuditEvent(type=AuditEventType.PURGE, success=True, note_id="gone"))
        await audit_logger.flush()
    assert audit_repository.save.await_count == 3
    assert audit_logger.dead_lettered == 1
    records = [r for r in caplog.records if r.getMessage() == "audit_event_dead_lettered"]
    assert len(records) == 1
    assert records[0].audit_event["note_id"] == "gone"


async def test_events_persist_in_order(audit_logger, audit_repository):
    for i in range(5):
        await audit_logger.record(AuditEvent(type=AuditEventType.READ, success=True, note_id=str(i)))
    await audit_logger.flush()
    assert [c.args[0].note_id for c in audit_repository.save.call_args_list] == ["0", "1", "2", "3", "4"]


async def test_hanging_save_times_out_and_close_returns(audit_repository):
    async def never_returns(event):
        await asyncio.Event().wait()

    audit_repository.save.side_effect = never_returns
    logger = AuditLogger(
        repository=audit_repository,
        retry_backoff_seconds=0,
        max_attempts=2,
        save_timeout_seconds=0.01,
    )
    await logger.record(AuditEvent(type=AuditEventType.WRITE, success=True, note_id="stuck"))
    await asyncio.wait_for(logger.close(), timeout=2)
    assert audit_repository.save.await_count == 2
    assert logger.dead_lettered == 1
    assert logger.pending == 0
