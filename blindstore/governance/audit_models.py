"""Immutable audit event model. Domain-level immutability."""

from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Any, Dict, Optional


class AuditEventType(str, Enum):
    READ = "read"
    WRITE = "write"
    PURGE = "purge"


@dataclass(frozen=True)
class AuditEvent:
    """
    Outcome of one operation attempt: what (type, note_id), who (host, unverified user_id and
    plugin version), result (success, error) and how much (size_bytes, expire_window_days).
    timestamp is assigned by AuditLogger.record.
    """

    type: AuditEventType
    success: bool
    host: Optional[str] = None
    note_id: Optional[str] = None
    user_id: Optional[str] = None
    user_plugin_version: Optional[str] = None
    size_bytes: Optional[int] = None
    expire_window_days: Optional[int] = None
    error: Optional[str] = None
    timestamp: Optional[datetime] = None

    def to_dict(self) -> Dict[str, Any]:
        """Structured representation for JSON logging."""
        return {
            "type": self.type.value,
            "success": self.success,
            "host": self.host,
            "note_id": self.note_id,
            "user_id": self.user_id,
            "user_plugin_version": self.user_plugin_version,
            "size_bytes": self.size_bytes,
            "expire_window_days": self.expire_window_days,
            "error": self.error,
            "timestamp": self.timestamp.isoformat() if self.timestamp else None,
        }
