"""Domain-specific exceptions. Pure domain layer, no infrastructure."""


class DomainError(Exception):
    """Base for all domain-layer errors."""

    def __init__(self, message: str) -> None:
        self.message = message
        super().__init__(message)


class DomainValidationError(DomainError):
    """Raised when a request body violates the note schema or the identifier checksum."""


class PayloadTooLargeError(DomainError):
    """Raised when a request body exceeds the configured size limit."""
