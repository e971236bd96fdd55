"""ExpirySweeper tests: purge plus audit, no overlapping sweeps, distributed lock, loop lifecycle."""

import asyncio
import logging
from datetime import datetime, timedelta, timezone
from unittest.mock import AsyncMock

import pytest

from blindstore.application.exceptions import StorageFailureError
from blindstore.application.expiry_sweeper import SWEEP_LOCK_NAME, ExpirySweeper
from blindstore.application.note_service import NoteService
from blindstore.domain.identifier import generate_note_id
from blindstore.domain.models.note import Note
from blindstore.governance.audit_logger import AuditLogger
from blindstore.governance.audit_models import AuditEventType
from blindstore.infrastructure.memory.audit_repository_memory import InMemoryAuditRepository
from blindstore.infrastructure.memory.note_repository_memory import InMemoryNoteRepository
from blindstore.observability.metrics import MetricsCollector
from blindstore.scalability.distributed_lock import DistributedLock

EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)


class FakeLockBackend:
    def __init__(self) -> None:
        self.store: dict[str, str] = {}

    async def set_nx_ex(self, key: str, value: str, ttl: int) -> bool:
        if key in self.store:
            return False
        self.store[key] = value
        return True

    async def delete_if_value(self, key: str, value: str) -> bool:
        if self.store.get(key) == value:
            del self.store[key]
            return True
        return False


def _note(expire_time: datetime) -> Note:
    return Note(
        id=generate_note_id(),
        ciphertext="YWJj",
        hmac="ZGVm",
        insert_time=expire_time - timedelta(days=30),
        expire_time=expire_time,
    )


@pytest.fixture
def note_repository():
    return InMemoryNoteRepository()


@pytest.fixture
def audit_repository():
    return InMemoryAuditRepository()


@pytest.fixture
async def audit_logger(audit_repository):
    logger = AuditLogger(repository=audit_repository, retry_backoff_seconds=0)
    yield logger
    await logger.close()


@pytest.fixture
def metrics():
    return MetricsCollector()


@pytest.fixture
def sweeper(note_repository, audit_logger, metrics):
    service = NoteService(repository=note_repository, logger=logging.getLogger("test.notes"))
    return ExpirySweeper(note_service=service, audit_logger=audit_logger, metrics=metrics)


@pytest.mark.asyncio
async def test_run_once_purges_and_audits_expired(sweeper, note_repository, audit_logger, audit_repository, metrics):
    expired = await note_repository.insert(_note(EPOCH))
    live = await note_repository.insert(_note(datetime.now(timezone.utc) + timedelta(days=1)))

    assert await sweeper.run_once() == 1
    assert await note_repository.get(expired.id) is None
    assert await note_repository.has_tombstone(expired.id)
    assert await note_repository.get(live.id) == live

    await audit_logger.flush()
    (event,) = audit_repository.find(type=AuditEventType.PURGE)
    assert event.note_id == expired.id
    assert event.success is True
    assert event.host is None
    assert event.size_bytes == expired.size_bytes
    assert metrics.counter("notes_purged") == 1
    assert sweeper.stats.runs == 1
    assert sweeper.stats.last_purged == 1


@pytest.mark.asyncio
async def test_run_once_is_idempotent(sweeper, note_repository, audit_logger, audit_repository):
    await note_repository.insert(_note(EPOCH))
    assert await sweeper.run_once() == 1
    assert await sweeper.run_once() == 0
    await audit_logger.flush()
    assert len(audit_repository.find(type=AuditEventType.PURGE)) == 1


@pytest.mark.asyncio
async def test_concurrent_runs_purge_each_note_once(sweeper, note_repository, audit_logger, audit_repository):
    for _ in range(5):
        await note_repository.insert(_note(EPOCH))
    results = await asyncio.gather(*(sweeper.run_once() for _ in range(4)))
    assert sum(results) == 5
    await audit_logger.flush()
    purges = audit_repository.find(type=AuditEventType.PURGE)
    assert len(purges) == 5
    assert len({e.note_id for e in purges}) == 5


@pytest.mark.asyncio
async def test_two_instances_share_distributed_lock(note_repository, audit_logger, audit_repository):
    backend = FakeLockBackend()
    service = NoteService(repository=note_repository, logger=logging.getLogger("test.notes"))
    first = ExpirySweeper(service, audit_logger, lock=DistributedLock(backend))
    second = ExpirySweeper(service, audit_logger, lock=DistributedLock(backend))
    for _ in range(3):
        await note_repository.insert(_note(EPOCH))

    results = await asyncio.gather(first.run_once(), second.run_once())
    assert sorted(results) == [0, 3]
    assert backend.store == {}
    await audit_logger.flush()
    assert len(audit_repository.find(type=AuditEventType.PURGE)) == 3


@pytest.mark.asyncio
async def test_sweep_skipped_when_lock_held_elsewhere(note_repository, audit_logger):
    backend = FakeLockBackend()
    other = DistributedLock(backend)
    await other.acquire(SWEEP_LOCK_NAME, ttl=60)
    service = NoteService(repository=note_repository, logger=logging.getLogger("test.notes"))
    sweeper = ExpirySweeper(service, audit_logger, lock=DistributedLock(backend))
    await note_repository.insert(_note(EPOCH))

    assert await sweeper.run_once() == 0
    assert len(note_repository) == 1
    assert sweeper.stats.runs == 0


@pytest.mark.asyncio
async def test_start_runs_sweep_and_stop_waits(sweeper, note_repository):
    await note_repository.insert(_note(EPOCH))
    sweeper.start()
    assert sweeper.running
    for _ in range(100):
        if sweeper.stats.runs:
            break
        await asyncio.sleep(0.01)
    await sweeper.stop()
    assert not sweeper.running
    assert sweeper.stats.total_purged == 1


@pytest.mark.asyncio
async def test_failed_sweep_is_counted_and_loop_survives(audit_logger, metrics):
    calls = []

    async def purge_expired():
        calls.append(1)
        if len(calls) == 1:
            raise RuntimeError("db down")
        return []

    service = AsyncMock()
    service.purge_expired.side_effect = purge_expired
    service.prune_tombstones.return_value = 0
    sweeper = ExpirySweeper(service, audit_logger, interval_seconds=0.01, metrics=metrics)

    sweeper.start()
    for _ in range(100):
        if sweeper.stats.runs:
            break
        await asyncio.sleep(0.01)
    await sweeper.stop()

    assert metrics.counter("sweep_failures") == 1
    assert sweeper.stats.runs >= 1
    assert sweeper.stats.consecutive_failures == 0


@pytest.mark.asyncio
async def test_prune_failure_keeps_purge_result(note_repository, audit_logger, audit_repository, metrics):
    service = NoteService(repository=note_repository, logger=logging.getLogger("test.notes"))
    service.prune_tombstones = AsyncMock(side_effect=StorageFailureError("prune_tombstones failed: db down"))
    sweeper = ExpirySweeper(service, audit_logger, metrics=metrics)
    expired = await note_repository.insert(_note(EPOCH))

    assert await sweeper.run_once() == 1
    assert await note_repository.has_tombstone(expired.id)
    assert sweeper.stats.runs == 1
    assert sweeper.stats.total_purged == 1
    assert sweeper.stats.consecutive_failures == 0
    assert "db down" in sweeper.stats.last_error
    assert metrics.counter("tombstone_prune_failures") == 1
    await audit_logger.flush()
    assert len(audit_repository.find(type=AuditEventType.PURGE, note_id=expired.id)) == 1


@pytest.mark.asyncio
async def test_unreachable_lock_backend_falls_back_to_local_lock(note_repository, audit_logger, metrics):
    class DownLockBackend(FakeLockBackend):
        async def set_nx_ex(self, key: str, value: str, ttl: int) -> bool:
            raise ConnectionError("redis unavailable")

    service = NoteService(repository=note_repository, logger=logging.getLogger("test.notes"))
    sweeper = ExpirySweeper(service, audit_logger, lock=DistributedLock(DownLockBackend()), metrics=metrics)
    await note_repository.insert(_note(EPOCH))

    assert await sweeper.run_once() == 1
    assert len(note_repository) == 0
    assert metrics.counter("sweep_lock_errors") == 1


@pytest.mark.asyncio
async def test_failed_lock_release_does_not_fail_sweep(note_repository, audit_logger):
    class NoReleaseBackend(FakeLockBackend):
        async def delete_if_value(self, key: str, value: str) -> bool:
            raise ConnectionError("redis unavailable")

    service = NoteService(repository=note_repository, logger=logging.getLogger("test.notes"))
    sweeper = ExpirySweeper(service, audit_logger, lock=DistributedLock(NoReleaseBackend()))
    await note_repository.insert(_note(EPOCH))
    assert await sweeper.run_once() == 1
