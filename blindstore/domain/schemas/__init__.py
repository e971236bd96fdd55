"""Domain schemas. Request/response and validation."""

from blindstore.domain.schemas.note import (
    NotePostRequest,
    NotePostResponse,
    NoteResponse,
)

__all__ = [
    "NotePostRequest",
    "NotePostResponse",
    "NoteResponse",
]
