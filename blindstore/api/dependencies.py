"""FastAPI dependency injection: per-application components (repositories, services, limiter, audit log, sweeper)."""

import logging
from dataclasses import dataclass
from typing import Annotated, Optional

from fastapi import Depends, Request
from sqlalchemy.ext.asyncio import AsyncEngine

from blindstore.application.expiry_sweeper import ExpirySweeper
from blindstore.application.note_repository import NoteRepository
from blindstore.application.note_service import NoteService
from blindstore.config.settings import AppSettings, get_settings
from blindstore.core.context import client_host_ctx
from blindstore.governance.audit_logger import AuditLogger
from blindstore.governance.audit_repository import AuditRepository
from blindstore.infrastructure.cache.redis_client import RedisClient
from blindstore.infrastructure.database.audit_repository_db import DbAuditRepository
from blindstore.infrastructure.database.note_repository_db import DbNoteRepository
from blindstore.infrastructure.database.session import (
    create_engine,
    create_session_factory,
    init_models,
)
from blindstore.infrastructure.memory.audit_repository_memory import InMemoryAuditRepository
from blindstore.infrastructure.memory.note_repository_memory import InMemoryNoteRepository
from blindstore.observability.metrics import MetricsCollector
from blindstore.scalability.distributed_lock import DistributedLock
from blindstore.scalability.rate_limiter import ClientRateLimiter, InMemoryRateLimitBackend

logger = logging.getLogger(__name__)


@dataclass
class Components:
    """Everything a request or the sweeper needs, built once per application. No module-level singletons."""

    settings: AppSettings
    metrics: MetricsCollector
    note_repository: NoteRepository
    audit_repository: AuditRepository
    note_service: NoteService
    audit_logger: AuditLogger
    rate_limiter: ClientRateLimiter
    sweeper: ExpirySweeper
    engine: Optional[AsyncEngine] = None
    redis: Optional[RedisClient] = None

    async def startup(self) -> None:
        if self.engine is not None and self.settings.create_tables:
            await init_models(self.engine)
        if self.settings.sweep_enabled:
            self.sweeper.start()

    async def shutdown(self) -> None:
        await self.sweeper.stop()
        await self.audit_logger.close()
        if self.redis is not None:
            await self.redis.close()
        if self.engine is not None:
            await self.engine.dispose()


def build_components(
    settings: AppSettings,
    note_repository: Optional[NoteRepository] = None,
    audit_repository: Optional[AuditRepository] = None,
) -> Components:
    """Wire repositories, services, limiter and sweeper from settings. Repositories may be supplied (tests, scripts)."""
    metrics = MetricsCollector()
    engine = None
    if note_repository is None or audit_repository is None:
        if settings.storage_backend == "postgres":
            engine = create_engine(settings.database_url, settings.storage_timeout_seconds)
            session_factory = create_session_factory(engine)
            note_repository = note_repository or DbNoteRepository(session_factory)
            audit_repository = audit_repository or DbAuditRepository(session_factory)
        else:
            note_repository = note_repository or InMemoryNoteRepository()
            audit_repository = audit_repository or InMemoryAuditRepository()

    use_sweep_lock = settings.sweep_use_distributed_lock and settings.storage_backend == "postgres"
    redis_client = None
    if settings.rate_limit_backend == "redis" or use_sweep_lock:
        redis_client = RedisClient(settings.redis_url, settings.redis_timeout_seconds)

    note_service = NoteService(
        repository=note_repository,
        logger=logging.getLogger("blindstore.notes"),
        expire_window_days=settings.expire_window_days,
        max_id_attempts=settings.max_id_attempts,
        storage_timeout_seconds=settings.storage_timeout_seconds,
        tombstone_retention_days=settings.tombstone_retention_days,
    )
    audit_logger = AuditLogger(
        repository=audit_repository,
        logger=logging.getLogger("blindstore.audit"),
        max_attempts=settings.audit_max_attempts,
        retry_backoff_seconds=settings.audit_retry_backoff_seconds,
        save_timeout_seconds=settings.audit_save_timeout_seconds,
    )
    rate_limiter = ClientRateLimiter(
        backend=redis_client if settings.rate_limit_backend == "redis" else InMemoryRateLimitBackend(),
        read_requests_per_window=settings.rate_limit_read_requests,
        write_requests_per_window=settings.rate_limit_write_requests,
        window_seconds=settings.rate_limit_window_seconds,
        metrics=metrics,
        logger=logging.getLogger("blindstore.ratelimit"),
    )
    sweeper = ExpirySweeper(
        note_service=note_service,
        audit_logger=audit_logger,
        interval_seconds=settings.sweep_interval_seconds,
        lock=DistributedLock(backend=redis_client) if use_sweep_lock and redis_client else None,
        lock_ttl_seconds=settings.sweep_lock_ttl_seconds,
        metrics=metrics,
        logger=logging.getLogger("blindstore.sweeper"),
    )
    logger.info(
        "components_built",
        extra={
            "storage_backend": settings.storage_backend,
            "rate_limit_backend": settings.rate_limit_backend,
            "sweep_lock": use_sweep_lock,
        },
    )
    return Components(
        settings=settings,
        metrics=metrics,
        note_repository=note_repository,
        audit_repository=audit_repository,
        note_service=note_service,
        audit_logger=audit_logger,
        rate_limiter=rate_limiter,
        sweeper=sweeper,
        engine=engine,
        redis=redis_client,
    )


async def get_components(request: Request) -> Components:
    """Return the components attached to this application (built by lifespan, or lazily on first use)."""
    components = getattr(request.app.state, "components", None)
    if components is None:
        components = build_components(get_settings())
        request.app.state.components = components
    return components


ComponentsDep = Annotated[Components, Depends(get_components)]


def get_app_settings(components: ComponentsDep) -> AppSettings:
    return components.settings


def get_note_service(components: ComponentsDep) -> NoteService:
    return components.note_service


def get_audit_logger(components: ComponentsDep) -> AuditLogger:
    return components.audit_logger


def get_rate_limiter(components: ComponentsDep) -> ClientRateLimiter:
    return components.rate_limiter


def get_metrics(components: ComponentsDep) -> MetricsCollector:
    return components.metrics


async def get_client_host(
    request: Request,
    settings: Annotated[AppSettings, Depends(get_app_settings)],
) -> str:
    """Caller address used as rate-limit key and audit host. The proxy header is trusted only when configured."""
    host = None
    if settings.client_ip_header:
        forwarded = request.headers.get(settings.client_ip_header)
        if forwarded:
            host = forwarded.split(",")[0].strip()
    if not host:
        host = request.client.host if request.client else "unknown"
    client_host_ctx.set(host)
    return host
