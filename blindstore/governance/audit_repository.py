"""Audit repository protocol. Governance layer depends on this; infrastructure implements it."""

from typing import Protocol

from blindstore.governance.audit_models import AuditEvent


class AuditRepository(Protocol):
    """Protocol for persisting immutable audit events. Append-only."""

    async def save(self, event: AuditEvent) -> None:
        """Persist an audit event. Must not allow mutation."""
        ...
