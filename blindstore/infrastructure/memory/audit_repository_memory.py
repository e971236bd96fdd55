"""In-memory audit repository. Append-only list."""

from typing import Optional

from blindstore.governance.audit_models import AuditEvent, AuditEventType


class InMemoryAuditRepository:
    """Implements AuditRepository. find() mirrors the out-of-band queries operators run on the events table."""

    def __init__(self) -> None:
        self._events: list[AuditEvent] = []

    async def save(self, event: AuditEvent) -> None:
        self._events.append(event)

    def find(
        self,
        type: Optional[AuditEventType] = None,
        note_id: Optional[str] = None,
    ) -> list[AuditEvent]:
        return [
            e
            for e in self._events
            if (type is None or e.type == type) and (note_id is None or e.note_id == note_id)
        ]

    def __len__(self) -> int:
        return len(self._events)
