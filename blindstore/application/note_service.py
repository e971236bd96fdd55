"""Note Store application service. Owns the note lifecycle: create, expiry-aware read, purge with tombstones."""

import asyncio
import logging
from datetime import datetime, timedelta, timezone
from typing import Awaitable, Callable, Optional, TypeVar

from blindstore.application.exceptions import (
    ApplicationError,
    IdentifierExhaustedError,
    InvalidNoteIdError,
    NoteGoneError,
    NoteIdConflictError,
    NoteNotFoundError,
    StorageFailureError,
)
from blindstore.application.note_repository import NoteRepository
from blindstore.domain.identifier import generate_note_id, is_valid_note_id
from blindstore.domain.models.note import (
    DEFAULT_CRYPTO_VERSION,
    EXPIRE_WINDOW_DAYS,
    Note,
    compute_expire_time,
)

T = TypeVar("T")

DEFAULT_MAX_ID_ATTEMPTS = 5
DEFAULT_STORAGE_TIMEOUT_SECONDS = 5.0
DEFAULT_TOMBSTONE_RETENTION_DAYS = 365


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class NoteService:
    """
    Application-layer orchestration only. No HTTP, no FastAPI, no direct infrastructure.
    Only purge_expired moves a note from present to tombstoned; reads never delete.
    Every repository call is bounded by a timeout and failures surface as StorageFailureError.
    """

    def __init__(
        self,
        repository: NoteRepository,
        logger: logging.Logger,
        expire_window_days: int = EXPIRE_WINDOW_DAYS,
        max_id_attempts: int = DEFAULT_MAX_ID_ATTEMPTS,
        storage_timeout_seconds: float = DEFAULT_STORAGE_TIMEOUT_SECONDS,
        tombstone_retention_days: int = DEFAULT_TOMBSTONE_RETENTION_DAYS,
        clock: Optional[Callable[[], datetime]] = None,
        id_factory: Callable[[], str] = generate_note_id,
    ) -> None:
        self._repository = repository
        self._logger = logger
        self._expire_window_days = expire_window_days
        self._max_id_attempts = max_id_attempts
        self._timeout = storage_timeout_seconds
        self._tombstone_retention = timedelta(days=tombstone_retention_days)
        self._clock = clock or _utcnow
        self._id_factory = id_factory

    @property
    def expire_window_days(self) -> int:
        return self._expire_window_days

    async def _call(self, operation: str, awaitable: Awaitable[T]) -> T:
        try:
            return await asyncio.wait_for(awaitable, timeout=self._timeout)
        except ApplicationError:
            raise
        except asyncio.TimeoutError as e:
            self._logger.error(
                "storage_timeout",
                extra={"operation": operation, "timeout_seconds": self._timeout},
            )
            raise StorageFailureError(f"{operation} timed out after {self._timeout}s") from e
        except Exception as e:
            self._logger.error(
                "storage_failure",
                extra={"operation": operation, "error": str(e)},
            )
            raise StorageFailureError(f"{operation} failed: {e}") from e

    async def create(
        self,
        ciphertext: str,
        hmac: str,
        crypto_version: str = DEFAULT_CRYPTO_VERSION,
    ) -> Note:
        """
        Persist a new note under a fresh identifier. Retries identifier assignment on conflict
        up to max_id_attempts, then raises IdentifierExhaustedError.
        """
        for attempt in range(1, self._max_id_attempts + 1):
            insert_time = self._clock()
            note = Note(
                id=self._id_factory(),
                ciphertext=ciphertext,
                hmac=hmac,
                crypto_version=crypto_version,
                insert_time=insert_time,
                expire_time=compute_expire_time(insert_time, self._expire_window_days),
            )
            try:
                stored = await self._call("insert", self._repository.insert(note))
            except NoteIdConflictError:
                self._logger.warning(
                    "note_id_collision",
                    extra={"note_id": note.id, "attempt": attempt},
                )
                continue
            self._logger.info(
                "note_created",
                extra={
                    "note_id": stored.id,
                    "size_bytes": stored.size_bytes,
                    "expire_time": stored.expire_time.isoformat(),
                },
            )
            return stored
        raise IdentifierExhaustedError(
            f"No free note id after {self._max_id_attempts} attempts"
        )

    async def read(self, note_id: str) -> Note:
        """
        Resolve a note. Syntactically invalid ids are not found (never gone). A note past its
        expire_time but not yet swept is still returned.
        """
        if not is_valid_note_id(note_id):
            raise InvalidNoteIdError("Invalid note id")
        note = await self._call("get", self._repository.get(note_id))
        if note is not None:
            return note
        if await self._call("has_tombstone", self._repository.has_tombstone(note_id)):
            raise NoteGoneError("Note expired")
        raise NoteNotFoundError("Note not found")

    async def purge_expired(self) -> list[Note]:
        """Delete every note expired as of now, tombstoning each id. Returns the purged notes."""
        purged = await self._call("purge_expired", self._repository.purge_expired(self._clock()))
        if purged:
            self._logger.info("notes_purged", extra={"count": len(purged)})
        return purged

    async def prune_tombstones(self) -> int:
        """Forget tombstones older than the retention horizon; those ids read as not found afterwards."""
        cutoff = self._clock() - self._tombstone_retention
        removed = await self._call("prune_tombstones", self._repository.prune_tombstones(cutoff))
        if removed:
            self._logger.info("tombstones_pruned", extra={"count": removed, "cutoff": cutoff.isoformat()})
        return removed
