"""Expiry sweeper: supervised periodic task that purges expired notes, audits each purge and prunes old tombstones."""

import asyncio
import logging
import time
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Callable, Dict, Optional

from blindstore.application.note_service import NoteService
from blindstore.governance.audit_logger import AuditLogger
from blindstore.governance.audit_models import AuditEvent, AuditEventType
from blindstore.observability.metrics import MetricsCollector
from blindstore.scalability.distributed_lock import DistributedLock

SWEEP_LOCK_NAME = "expiry-sweep"


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass
class SweepStats:
    runs: int = 0
    total_purged: int = 0
    last_purged: int = 0
    last_run_at: Optional[datetime] = None
    last_error: Optional[str] = None
    consecutive_failures: int = 0

    def to_dict(self) -> Dict[str, Any]:
        return {
            "runs": self.runs,
            "total_purged": self.total_purged,
            "last_purged": self.last_purged,
            "last_run_at": self.last_run_at.isoformat() if self.last_run_at else None,
            "last_error": self.last_error,
            "consecutive_failures": self.consecutive_failures,
        }


class ExpirySweeper:
    """
    Runs run_once() every interval_seconds between start() and stop().
    Sweeps never overlap: an asyncio.Lock serializes them within the process and an optional
    DistributedLock across processes (a sweep that cannot take it is skipped; if Redis cannot
    be reached the sweep runs under the local lock alone). Combined with the repository's
    atomic delete-plus-tombstone, each note is purged and audited exactly once.
    A failed sweep is logged and counted; the loop keeps running.
    """

    def __init__(
        self,
        note_service: NoteService,
        audit_logger: AuditLogger,
        interval_seconds: float = 600.0,
        lock: Optional[DistributedLock] = None,
        lock_ttl_seconds: int = 300,
        metrics: Optional[MetricsCollector] = None,
        logger: Optional[logging.Logger] = None,
        clock: Callable[[], datetime] = _utcnow,
    ) -> None:
        self._notes = note_service
        self._audit = audit_logger
        self._interval = interval_seconds
        self._lock = lock
        self._lock_ttl = lock_ttl_seconds
        self._metrics = metrics
        self._logger = logger or logging.getLogger(__name__)
        self._clock = clock
        self._local_lock = asyncio.Lock()
        self._stop_event: asyncio.Event | None = None
        self._task: asyncio.Task[None] | None = None
        self._stats = SweepStats()

    @property
    def stats(self) -> SweepStats:
        return self._stats

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    async def run_once(self) -> int:
        """Purge everything expired right now. Returns the number of notes purged (0 if skipped)."""
        async with self._local_lock:
            if self._lock is None:
                return await self._sweep()
            try:
                acquired = await self._lock.acquire(SWEEP_LOCK_NAME, self._lock_ttl)
            except Exception as e:
                # Purge is atomic per note, so the local lock alone still purges each note once
                self._logger.warning("sweep_lock_unavailable", extra={"error": str(e)})
                if self._metrics:
                    self._metrics.increment("sweep_lock_errors")
                return await self._sweep()
            if not acquired:
                self._logger.info("sweep_skipped", extra={"reason": "lock held by another instance"})
                return 0
            try:
                return await self._sweep()
            finally:
                await self._release_lock()

    async def _release_lock(self) -> None:
        try:
            await self._lock.release(SWEEP_LOCK_NAME)
        except Exception as e:
            # the TTL frees it
            self._logger.warning("sweep_lock_release_failed", extra={"error": str(e)})

    async def _sweep(self) -> int:
        started = time.monotonic()
        purged = await self._notes.purge_expired()
        for note in purged:
            await self._audit.record(
                AuditEvent(
                    type=AuditEventType.PURGE,
                    success=True,
                    note_id=note.id,
                    size_bytes=note.size_bytes,
                )
            )
        self._stats.runs += 1
        self._stats.last_purged = len(purged)
        self._stats.total_purged += len(purged)
        self._stats.last_run_at = self._clock()
        self._stats.last_error = None
        self._stats.consecutive_failures = 0
        if self._metrics:
            self._metrics.increment("notes_purged", len(purged))

        pruned = await self._prune_tombstones()
        elapsed_ms = (time.monotonic() - started) * 1000
        if self._metrics:
            self._metrics.observe_latency("sweep_latency_ms", elapsed_ms)
        self._logger.info(
            "sweep_completed",
            extra={"purged": len(purged), "tombstones_pruned": pruned, "duration_ms": round(elapsed_ms, 2)},
        )
        return len(purged)

    async def _prune_tombstones(self) -> int:
        """Pruning failures do not undo a committed purge; they are logged, counted and retried next sweep."""
        try:
            pruned = await self._notes.prune_tombstones()
        except Exception as e:
            self._stats.last_error = f"tombstone prune failed: {e}"
            if self._metrics:
                self._metrics.increment("tombstone_prune_failures")
            self._logger.error("tombstone_prune_failed", extra={"error": str(e)})
            return 0
        if self._metrics:
            self._metrics.increment("tombstones_pruned", pruned)
        return pruned

    async def _run_loop(self, stop_event: asyncio.Event) -> None:
        while not stop_event.is_set():
            try:
                await self.run_once()
            except Exception as e:
                self._stats.consecutive_failures += 1
                self._stats.last_error = str(e)
                if self._metrics:
                    self._metrics.increment("sweep_failures")
                self._logger.error(
                    "sweep_failed",
                    extra={"error": str(e), "consecutive_failures": self._stats.consecutive_failures},
                )
            try:
                await asyncio.wait_for(stop_event.wait(), timeout=self._interval)
            except asyncio.TimeoutError:
                pass

    def start(self) -> None:
        """Start the periodic loop on the running event loop. No-op if already running."""
        if self.running:
            return
        self._stop_event = asyncio.Event()
        self._task = asyncio.create_task(self._run_loop(self._stop_event))
        self._logger.info("sweeper_started", extra={"interval_seconds": self._interval})

    async def stop(self) -> None:
        """Signal the loop to stop and wait for an in-flight sweep to finish."""
        if self._task is None:
            return
        if self._stop_event is not None:
            self._stop_event.set()
        await self._task
        self._task = None
        self._logger.info("sweeper_stopped", extra={"runs": self._stats.runs})
