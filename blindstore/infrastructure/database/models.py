# blindstore/infrastructure/database/models.py

import uuid

from sqlalchemy import Boolean, Column, DateTime, Integer, String, Text
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.sql import func

from blindstore.infrastructure.database.session import Base


class EncryptedNote(Base):
    """ORM model for stored notes. Rows are inserted once and deleted by the expiry sweep, never updated."""

    __tablename__ = "encrypted_notes"

    id = Column(String(16), primary_key=True)
    ciphertext = Column(Text, nullable=False)
    hmac = Column(Text, nullable=False)
    crypto_version = Column(String, nullable=False, default="v1")
    insert_time = Column(DateTime(timezone=True), nullable=False, server_default=func.now())
    expire_time = Column(DateTime(timezone=True), nullable=False, index=True)


class NoteTombstone(Base):
    """Ids purged on expiry, kept so reads answer 410 instead of 404."""

    __tablename__ = "note_tombstones"

    id = Column(String(16), primary_key=True)
    deleted_at = Column(DateTime(timezone=True), nullable=False, index=True)


class Event(Base):
    """ORM model for audit events. Append-only."""

    __tablename__ = "events"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    type = Column(String, nullable=False, index=True)
    success = Column(Boolean, nullable=False)
    host = Column(String, nullable=True)
    note_id = Column(String, nullable=True, index=True)
    user_id = Column(String, nullable=True)
    user_plugin_version = Column(String, nullable=True)
    size_bytes = Column(Integer, nullable=True)
    expire_window_days = Column(Integer, nullable=True)
    error = Column(Text, nullable=True)
    time = Column(DateTime(timezone=True), nullable=False, server_default=func.now())
