"""In-memory note repository. Single process only; every method runs without awaiting, so each is atomic on the event loop."""

from datetime import datetime
from typing import Optional

from blindstore.application.exceptions import NoteIdConflictError
from blindstore.domain.models.note import Note, Tombstone


class InMemoryNoteRepository:
    """Implements NoteRepository with dicts: id -> Note and id -> Tombstone."""

    def __init__(self) -> None:
        self._notes: dict[str, Note] = {}
        self._tombstones: dict[str, Tombstone] = {}

    async def insert(self, note: Note) -> Note:
        if note.id in self._notes or note.id in self._tombstones:
            raise NoteIdConflictError(f"Note id {note.id} already exists")
        self._notes[note.id] = note
        return note

    async def get(self, note_id: str) -> Optional[Note]:
        return self._notes.get(note_id)

    async def has_tombstone(self, note_id: str) -> bool:
        return note_id in self._tombstones

    async def purge_expired(self, now: datetime) -> list[Note]:
        purged = [note for note in self._notes.values() if note.is_expired(now)]
        for note in purged:
            del self._notes[note.id]
            self._tombstones[note.id] = Tombstone(id=note.id, deleted_at=now)
        return purged

    async def prune_tombstones(self, before: datetime) -> int:
        stale = [t.id for t in self._tombstones.values() if t.deleted_at < before]
        for note_id in stale:
            del self._tombstones[note_id]
        return len(stale)

    def __len__(self) -> int:
        return len(self._notes)
