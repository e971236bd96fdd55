"""Domain validators. Pure validation functions."""

from blindstore.domain.validators.note_validator import (
    describe_validation_error,
    validate_body_size,
    validate_note_post_request,
    validate_user_id,
)

__all__ = [
    "describe_validation_error",
    "validate_body_size",
    "validate_note_post_request",
    "validate_user_id",
]
