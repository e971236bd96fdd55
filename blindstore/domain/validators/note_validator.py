"""Validators for note requests. Pure functions, no infrastructure or DB access."""

from typing import Any

from pydantic import ValidationError

from blindstore.domain.exceptions import DomainValidationError, PayloadTooLargeError
from blindstore.domain.identifier import ID_LENGTH, RANDOM_LENGTH, checksum
from blindstore.domain.schemas.note import NotePostRequest

INVALID_USER_ID = "Invalid user id (checksum failed)"


def describe_validation_error(error: ValidationError) -> str:
    """Flatten pydantic errors into one line: 'field: message; field: message'."""
    parts = []
    for item in error.errors():
        field = ".".join(str(loc) for loc in item.get("loc", ())) or "body"
        parts.append(f"{field}: {item.get('msg', 'invalid value')}")
    return "; ".join(parts)


def validate_body_size(size: int, max_bytes: int) -> None:
    if size > max_bytes:
        raise PayloadTooLargeError(f"Request body too large ({size} > {max_bytes} bytes)")


def validate_user_id(user_id: str | None) -> None:
    """
    A caller-supplied user_id must follow the note identifier scheme: 12 characters followed
    by their 4-character CRC-16. It is still unverified metadata, never used for authorization.
    """
    if user_id is None:
        return
    if len(user_id) != ID_LENGTH:
        raise DomainValidationError(INVALID_USER_ID)
    if checksum(user_id[:RANDOM_LENGTH]) != user_id[RANDOM_LENGTH:]:
        raise DomainValidationError(INVALID_USER_ID)


def validate_note_post_request(body: Any) -> NotePostRequest:
    """Parse and validate a raw JSON body. Raises DomainValidationError with a readable description."""
    if not isinstance(body, dict):
        raise DomainValidationError("Request body must be a JSON object")
    try:
        request = NotePostRequest.model_validate(body)
    except ValidationError as e:
        raise DomainValidationError(describe_validation_error(e)) from e
    validate_user_id(request.user_id)
    return request
