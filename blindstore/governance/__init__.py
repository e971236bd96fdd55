"""Governance: append-only audit log of note reads, writes and purges. No FastAPI."""

from blindstore.governance.audit_logger import AuditLogger
from blindstore.governance.audit_models import AuditEvent, AuditEventType
from blindstore.governance.audit_repository import AuditRepository

__all__ = [
    "AuditEvent",
    "AuditEventType",
    "AuditLogger",
    "AuditRepository",
]
