"""InMemoryNoteRepository: insert conflicts, purge with tombstones, tombstone pruning."""

from datetime import datetime, timedelta, timezone

import pytest

from blindstore.application.exceptions import NoteIdConflictError
from blindstore.domain.identifier import generate_note_id
from blindstore.domain.models.note import Note
from blindstore.infrastructure.memory.note_repository_memory import InMemoryNoteRepository

NOW = datetime(2024, 6, 1, tzinfo=timezone.utc)


def _note(note_id: str | None = None, expire_time: datetime = NOW) -> Note:
    return Note(
        id=note_id or generate_note_id(),
        ciphertext="YWJj",
        hmac="ZGVm",
        insert_time=expire_time - timedelta(days=30),
        expire_time=expire_time,
    )


@pytest.fixture
def repository():
    return InMemoryNoteRepository()


@pytest.mark.asyncio
async def test_insert_and_get(repository):
    note = _note()
    assert await repository.insert(note) == note
    assert await repository.get(note.id) == note
    assert await repository.get(generate_note_id()) is None


@pytest.mark.asyncio
async def test_insert_existing_id_conflicts(repository):
    note = _note()
    await repository.insert(note)
    with pytest.raises(NoteIdConflictError):
        await repository.insert(_note(note.id))


@pytest.mark.asyncio
async def test_tombstoned_id_is_never_reused(repository):
    note = await repository.insert(_note())
    await repository.purge_expired(NOW)
    with pytest.raises(NoteIdConflictError):
        await repository.insert(_note(note.id, expire_time=NOW + timedelta(days=30)))


@pytest.mark.asyncio
async def test_purge_moves_expired_notes_to_tombstones(repository):
    expired = await repository.insert(_note(expire_time=NOW - timedelta(seconds=1)))
    boundary = await repository.insert(_note(expire_time=NOW))
    live = await repository.insert(_note(expire_time=NOW + timedelta(seconds=1)))

    purged = await repository.purge_expired(NOW)
    assert {n.id for n in purged} == {expired.id, boundary.id}
    assert await repository.get(live.id) == live
    assert await repository.has_tombstone(expired.id)
    assert await repository.has_tombstone(boundary.id)
    assert not await repository.has_tombstone(live.id)
    assert await repository.purge_expired(NOW) == []


@pytest.mark.asyncio
async def test_prune_tombstones_before_cutoff(repository):
    note = await repository.insert(_note())
    await repository.purge_expired(NOW)
    assert await repository.prune_tombstones(NOW) == 0
    assert await repository.prune_tombstones(NOW + timedelta(seconds=1)) == 1
    assert not await repository.has_tombstone(note.id)
