"""Note repository protocol. Application layer depends on this; infrastructure implements it."""

from datetime import datetime
from typing import Optional, Protocol

from blindstore.domain.models.note import Note


class NoteRepository(Protocol):
    """Durable keyed store for notes and their tombstones. Every operation is scoped to one identifier or one purge."""

    async def insert(self, note: Note) -> Note:
        """Insert note if its id is free. Raises NoteIdConflictError if the id already exists."""
        ...

    async def get(self, note_id: str) -> Optional[Note]:
        """Return the stored note, expired or not, or None if absent."""
        ...

    async def has_tombstone(self, note_id: str) -> bool:
        """True if note_id was purged and its tombstone is still retained."""
        ...

    async def purge_expired(self, now: datetime) -> list[Note]:
        """
        Atomically delete every note with expire_time <= now and write a tombstone per id.
        Returns the deleted notes; a concurrent purge never returns the same note.
        """
        ...

    async def prune_tombstones(self, before: datetime) -> int:
        """Delete tombstones recorded before the given time. Returns the number removed."""
        ...
