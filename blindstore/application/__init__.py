# Application layer: services that orchestrate domain and infrastructure.

from blindstore.application.exceptions import (
    ApplicationError,
    IdentifierExhaustedError,
    InvalidNoteIdError,
    NoteGoneError,
    NoteIdConflictError,
    NoteNotFoundError,
    RateLimitedError,
    StorageFailureError,
)
from blindstore.application.expiry_sweeper import ExpirySweeper, SweepStats
from blindstore.application.note_repository import NoteRepository
from blindstore.application.note_service import NoteService

__all__ = [
    "ApplicationError",
    "ExpirySweeper",
    "IdentifierExhaustedError",
    "InvalidNoteIdError",
    "NoteGoneError",
    "NoteIdConflictError",
    "NoteNotFoundError",
    "NoteRepository",
    "NoteService",
    "RateLimitedError",
    "StorageFailureError",
    "SweepStats",
]
