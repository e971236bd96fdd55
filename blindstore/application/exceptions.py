"""Application-layer exceptions. Do not reuse domain exceptions."""


class ApplicationError(Exception):
    """Base for all application-layer errors."""

    def __init__(self, message: str) -> None:
        self.message = message
        super().__init__(message)


class NoteNotFoundError(ApplicationError):
    """Raised when no note and no tombstone exist for an identifier."""


class InvalidNoteIdError(NoteNotFoundError):
    """Raised when an identifier fails the checksum scheme. Never reported as gone."""


class NoteGoneError(ApplicationError):
    """Raised when a note was purged on expiry and its tombstone is still retained."""


class NoteIdConflictError(ApplicationError):
    """Raised by repositories when the identifier is already taken."""


class IdentifierExhaustedError(ApplicationError):
    """Raised when every identifier attempt collided with an existing note."""


class StorageFailureError(ApplicationError):
    """Raised when the persistence layer fails or times out. Message is internal, never sent to clients."""


class RateLimitedError(ApplicationError):
    """Raised when a client exceeds its request budget for the current window."""

    def __init__(self, message: str, retry_after: int | None = None) -> None:
        self.retry_after = retry_after
        super().__init__(message)
