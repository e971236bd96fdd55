"""DB-backed note repository. Persists notes and tombstones to PostgreSQL."""

from datetime import datetime
from typing import Optional

from sqlalchemy import delete, exists, select
from sqlalchemy.dialects.postgresql import insert
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from blindstore.application.exceptions import NoteIdConflictError
from blindstore.domain.models.note import Note
from blindstore.infrastructure.database.models import EncryptedNote, NoteTombstone


def _to_note(row) -> Note:
    return Note(
        id=row.id,
        ciphertext=row.ciphertext,
        hmac=row.hmac,
        crypto_version=row.crypto_version,
        insert_time=row.insert_time,
        expire_time=row.expire_time,
    )


class DbNoteRepository:
    """Implements NoteRepository. One short-lived session per call; purge runs in a single transaction."""

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]) -> None:
        self._session_factory = session_factory

    async def insert(self, note: Note) -> Note:
        """Insert unless the id is taken by a live note or a tombstone; ids are never reused."""
        async with self._session_factory() as session, session.begin():
            tombstoned = await session.scalar(
                select(exists().where(NoteTombstone.id == note.id))
            )
            if tombstoned:
                raise NoteIdConflictError(f"Note id {note.id} was used before")
            stmt = (
                insert(EncryptedNote)
                .values(
                    id=note.id,
                    ciphertext=note.ciphertext,
                    hmac=note.hmac,
                    crypto_version=note.crypto_version,
                    insert_time=note.insert_time,
                    expire_time=note.expire_time,
                )
                .on_conflict_do_nothing(index_elements=["id"])
                .returning(EncryptedNote)
            )
            result = await session.execute(stmt)
            row = result.scalar_one_or_none()
        if row is None:
            raise NoteIdConflictError(f"Note id {note.id} already exists")
        return _to_note(row)

    async def get(self, note_id: str) -> Optional[Note]:
        async with self._session_factory() as session:
            row = await session.get(EncryptedNote, note_id)
            return _to_note(row) if row is not None else None

    async def has_tombstone(self, note_id: str) -> bool:
        async with self._session_factory() as session:
            return bool(
                await session.scalar(select(exists().where(NoteTombstone.id == note_id)))
            )

    async def purge_expired(self, now: datetime) -> list[Note]:
        """DELETE ... RETURNING plus tombstone insert in one transaction; concurrent purges see disjoint rows."""
        async with self._session_factory() as session, session.begin():
            result = await session.execute(
                delete(EncryptedNote)
                .where(EncryptedNote.expire_time <= now)
                .returning(
                    EncryptedNote.id,
                    EncryptedNote.ciphertext,
                    EncryptedNote.hmac,
                    EncryptedNote.crypto_version,
                    EncryptedNote.insert_time,
                    EncryptedNote.expire_time,
                )
            )
            purged = [_to_note(row) for row in result.all()]
            if purged:
                stmt = insert(NoteTombstone).values(
                    [{"id": note.id, "deleted_at": now} for note in purged]
                )
                await session.execute(
                    stmt.on_conflict_do_update(
                        index_elements=["id"],
                        set_={"deleted_at": stmt.excluded.deleted_at},
                    )
                )
        return purged

    async def prune_tombstones(self, before: datetime) -> int:
        async with self._session_factory() as session, session.begin():
            result = await session.execute(
                delete(NoteTombstone).where(NoteTombstone.deleted_at < before)
            )
        return result.rowcount or 0
