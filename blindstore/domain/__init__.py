"""Domain layer: identifier codec, models, schemas, validators, exceptions. Pure business logic only."""

from blindstore.domain.exceptions import (
    DomainError,
    DomainValidationError,
    PayloadTooLargeError,
)
from blindstore.domain.identifier import crc16, generate_note_id, is_valid_note_id
from blindstore.domain.models import Note, Tombstone
from blindstore.domain.schemas import NotePostRequest, NotePostResponse, NoteResponse
from blindstore.domain.validators import validate_note_post_request

__all__ = [
    "DomainError",
    "DomainValidationError",
    "Note",
    "NotePostRequest",
    "NotePostResponse",
    "NoteResponse",
    "PayloadTooLargeError",
    "Tombstone",
    "crc16",
    "generate_note_id",
    "is_valid_note_id",
    "validate_note_post_request",
]
