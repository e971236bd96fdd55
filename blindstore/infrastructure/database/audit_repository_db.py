"""DB-backed audit repository. Appends audit events to the PostgreSQL events table."""

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from blindstore.governance.audit_models import AuditEvent
from blindstore.infrastructure.database.models import Event


class DbAuditRepository:
    """Implements AuditRepository. Insert-only."""

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]) -> None:
        self._session_factory = session_factory

    async def save(self, event: AuditEvent) -> None:
        orm = Event(
            type=event.type.value,
            success=event.success,
            host=event.host,
            note_id=event.note_id,
            user_id=event.user_id,
            user_plugin_version=event.user_plugin_version,
            size_bytes=event.size_bytes,
            expire_window_days=event.expire_window_days,
            error=event.error,
        )
        if event.timestamp is not None:
            orm.time = event.timestamp
        async with self._session_factory() as session:
            session.add(orm)
            await session.commit()
