"""Append-only audit log for note operations. Buffered writes with retry. No FastAPI."""

import asyncio
import logging
from dataclasses import replace
from datetime import datetime, timezone
from typing import Callable, Optional

from blindstore.governance.audit_models import AuditEvent
from blindstore.governance.audit_repository import AuditRepository


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class AuditLogger:
    """
    Writes immutable audit events via repository without blocking the caller.
    record() stamps the event (UTC) and enqueues it; a background worker persists it,
    retrying with exponential backoff. Each save is bounded by save_timeout_seconds and a
    timeout counts as a failed attempt. An event that exhausts its retries is written to the
    application log at ERROR level with its full payload, so nothing is dropped silently.
    """

    def __init__(
        self,
        repository: AuditRepository,
        logger: Optional[logging.Logger] = None,
        max_attempts: int = 5,
        retry_backoff_seconds: float = 0.5,
        max_backoff_seconds: float = 30.0,
        save_timeout_seconds: float = 5.0,
        backlog_warning_threshold: int = 1000,
        clock: Optional[Callable[[], datetime]] = None,
    ) -> None:
        self._repository = repository
        self._logger = logger or logging.getLogger(__name__)
        self._max_attempts = max(1, max_attempts)
        self._backoff = retry_backoff_seconds
        self._max_backoff = max_backoff_seconds
        self._save_timeout = save_timeout_seconds
        self._backlog_warning = backlog_warning_threshold
        self._clock = clock or _utcnow
        self._queue: asyncio.Queue[AuditEvent] = asyncio.Queue()
        self._worker: asyncio.Task[None] | None = None
        self._dead_lettered = 0

    @property
    def pending(self) -> int:
        return self._queue.qsize()

    @property
    def dead_lettered(self) -> int:
        return self._dead_lettered

    def _ensure_worker(self) -> None:
        if self._worker is None or self._worker.done():
            self._worker = asyncio.create_task(self._run_worker())

    async def _run_worker(self) -> None:
        while True:
            event = await self._queue.get()
            try:
                await self._persist(event)
            except Exception as e:
                self._logger.error(
                    "audit_worker_error",
                    extra={"audit_event": event.to_dict(), "error": str(e)},
                )
            finally:
                self._queue.task_done()

    async def _persist(self, event: AuditEvent) -> None:
        delay = self._backoff
        for attempt in range(1, self._max_attempts + 1):
            try:
                await asyncio.wait_for(self._repository.save(event), timeout=self._save_timeout)
                return
            except Exception as e:
                error = str(e) or type(e).__name__
                if attempt == self._max_attempts:
                    self._dead_lettered += 1
                    self._logger.error(
                        "audit_event_dead_lettered",
                        extra={
                            "audit_event": event.to_dict(),
                            "attempts": attempt,
                            "error": error,
                        },
                    )
                    return
                self._logger.warning(
                    "audit_event_retry",
                    extra={"attempt": attempt, "error": error, "note_id": event.note_id},
                )
                await asyncio.sleep(delay)
                delay = min(delay * 2, self._max_backoff)

    async def record(self, event: AuditEvent) -> None:
        """Stamp and enqueue an event. Returns immediately; persistence happens in the background."""
        stamped = replace(event, timestamp=self._clock())
        self._ensure_worker()
        self._queue.put_nowait(stamped)
        self._logger.debug("audit_event", extra={"audit_event": stamped.to_dict()})
        backlog = self._queue.qsize()
        if backlog >= self._backlog_warning:
            self._logger.warning("audit_backlog_high", extra={"pending": backlog})

    async def flush(self) -> None:
        """Wait until every recorded event has been persisted or dead-lettered."""
        if not self._queue.empty():
            self._ensure_worker()
        await self._queue.join()

    async def close(self) -> None:
        """Drain the queue, then stop the worker."""
        await self.flush()
        if self._worker is not None and not self._worker.done():
            self._worker.cancel()
            try:
                await self._worker
            except asyncio.CancelledError:
                pass
        self._worker = None
