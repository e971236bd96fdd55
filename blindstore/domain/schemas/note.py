"""Pydantic schemas for the note API. Strict validation, no DB or infrastructure."""

import base64
import binascii
from datetime import datetime
from typing import Annotated, Optional

from pydantic import BaseModel, ConfigDict, Field, StringConstraints, field_validator

from blindstore.domain.models.note import DEFAULT_CRYPTO_VERSION, Note


def _require_base64(value: str) -> str:
    try:
        base64.b64decode(value, validate=True)
    except (binascii.Error, ValueError) as e:
        raise ValueError("must be base64 encoded") from e
    return value


# ---------------------------------------------------------------------------
# Request schemas
# ---------------------------------------------------------------------------

class NotePostRequest(BaseModel):
    """Request body for creating a note. user_id and plugin_version are unverified, logged-only metadata."""

    model_config = ConfigDict(extra="ignore")

    ciphertext: str = Field(..., min_length=1, description="Base64 encrypted payload")
    hmac: str = Field(..., min_length=1, description="Base64 authentication tag")
    user_id: Optional[Annotated[str, StringConstraints(pattern=r"^[0-9a-fA-F]+$")]] = None
    plugin_version: Optional[Annotated[str, StringConstraints(pattern=r"^[0-9]+\.[0-9]+\.[0-9]+$")]] = None
    crypto_version: str = Field(DEFAULT_CRYPTO_VERSION, pattern=r"^v[0-9]+$")

    @field_validator("ciphertext", "hmac")
    @classmethod
    def must_be_base64(cls, v: str) -> str:
        return _require_base64(v)


# ---------------------------------------------------------------------------
# Response schemas
# ---------------------------------------------------------------------------

class NotePostResponse(BaseModel):
    view_url: str
    expire_time: datetime


class NoteResponse(BaseModel):
    """Response schema for note read. Payload fields are returned byte-identical to what was stored."""

    id: str
    ciphertext: str
    hmac: str
    expire_time: datetime
    insert_time: datetime
    crypto_version: str

    model_config = {"from_attributes": True}

    @classmethod
    def from_note(cls, note: Note) -> "NoteResponse":
        return cls.model_validate(note)
