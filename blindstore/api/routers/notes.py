"""Notes API router: POST /api/note, GET /api/note/{note_id}. Every request past the rate limiter is audited exactly once."""

import json
from typing import Annotated, Any

from fastapi import APIRouter, Depends, Request

from blindstore.api.dependencies import (
    get_app_settings,
    get_audit_logger,
    get_client_host,
    get_metrics,
    get_note_service,
    get_rate_limiter,
)
from blindstore.application.exceptions import RateLimitedError
from blindstore.application.note_service import NoteService
from blindstore.config.settings import AppSettings
from blindstore.domain.exceptions import DomainValidationError
from blindstore.domain.schemas.note import NotePostResponse, NoteResponse
from blindstore.domain.validators.note_validator import (
    validate_body_size,
    validate_note_post_request,
)
from blindstore.governance.audit_logger import AuditLogger
from blindstore.governance.audit_models import AuditEvent, AuditEventType
from blindstore.observability.metrics import MetricsCollector
from blindstore.scalability.rate_limiter import ClientRateLimiter, OperationClass

router = APIRouter()


def _describe(exc: Exception) -> str:
    return getattr(exc, "message", None) or str(exc) or type(exc).__name__


def _parse_json(raw: bytes) -> Any:
    try:
        return json.loads(raw)
    except ValueError as e:
        raise DomainValidationError("Malformed JSON body") from e


def _caller_metadata(body: Any) -> dict[str, str | None]:
    """Unverified user_id and plugin_version, kept for the audit trail only."""
    if not isinstance(body, dict):
        return {}
    user_id = body.get("user_id")
    plugin_version = body.get("plugin_version")
    return {
        "user_id": user_id if isinstance(user_id, str) else None,
        "user_plugin_version": plugin_version if isinstance(plugin_version, str) else None,
    }


async def _read_body(request: Request, max_bytes: int) -> bytes:
    """Read the body chunk by chunk, giving up as soon as it passes max_bytes (chunked uploads carry no Content-Length)."""
    chunks = []
    received = 0
    async for chunk in request.stream():
        received += len(chunk)
        validate_body_size(received, max_bytes)
        chunks.append(chunk)
    return b"".join(chunks)


async def _enforce_rate_limit(
    limiter: ClientRateLimiter,
    host: str,
    operation: OperationClass,
) -> None:
    if not await limiter.allow(host, operation):
        raise RateLimitedError(
            "Too many requests, please try again later",
            retry_after=limiter.retry_after(),
        )


@router.post("", response_model=NotePostResponse)
async def post_note(
    request: Request,
    host: Annotated[str, Depends(get_client_host)],
    settings: Annotated[AppSettings, Depends(get_app_settings)],
    note_service: Annotated[NoteService, Depends(get_note_service)],
    audit_logger: Annotated[AuditLogger, Depends(get_audit_logger)],
    rate_limiter: Annotated[ClientRateLimiter, Depends(get_rate_limiter)],
    metrics: Annotated[MetricsCollector, Depends(get_metrics)],
):
    """
    Store an encrypted note for the retention window. Rate limiting runs before the body is read
    and carries no subject, so a 429 here is not audited; everything after it is.
    """
    await _enforce_rate_limit(rate_limiter, host, OperationClass.WRITE)

    caller: dict[str, str | None] = {}
    try:
        raw = await _read_body(request, settings.max_body_bytes)
        body = _parse_json(raw)
        caller = _caller_metadata(body)
        note_request = validate_note_post_request(body)
        note = await note_service.create(
            ciphertext=note_request.ciphertext,
            hmac=note_request.hmac,
            crypto_version=note_request.crypto_version,
        )
    except Exception as e:
        await audit_logger.record(
            AuditEvent(
                type=AuditEventType.WRITE,
                success=False,
                host=host,
                error=_describe(e),
                **caller,
            )
        )
        metrics.increment("note_requests_failed", operation=OperationClass.WRITE.value)
        raise

    await audit_logger.record(
        AuditEvent(
            type=AuditEventType.WRITE,
            success=True,
            host=host,
            note_id=note.id,
            size_bytes=note.size_bytes,
            expire_window_days=note_service.expire_window_days,
            **caller,
        )
    )
    metrics.increment("notes_written")
    return NotePostResponse(
        view_url=f"{settings.frontend_url.rstrip('/')}/note/{note.id}",
        expire_time=note.expire_time,
    )


@router.get("/{note_id}", response_model=NoteResponse)
async def get_note(
    note_id: str,
    host: Annotated[str, Depends(get_client_host)],
    note_service: Annotated[NoteService, Depends(get_note_service)],
    audit_logger: Annotated[AuditLogger, Depends(get_audit_logger)],
    rate_limiter: Annotated[ClientRateLimiter, Depends(get_rate_limiter)],
    metrics: Annotated[MetricsCollector, Depends(get_metrics)],
):
    """Return a stored note. 404 for invalid or unknown ids, 410 once the sweeper has purged it."""
    try:
        await _enforce_rate_limit(rate_limiter, host, OperationClass.READ)
        note = await note_service.read(note_id)
    except Exception as e:
        await audit_logger.record(
            AuditEvent(
                type=AuditEventType.READ,
                success=False,
                host=host,
                note_id=note_id,
                error=_describe(e),
            )
        )
        metrics.increment("note_requests_failed", operation=OperationClass.READ.value)
        raise

    await audit_logger.record(
        AuditEvent(
            type=AuditEventType.READ,
            success=True,
            host=host,
            note_id=note.id,
            size_bytes=note.size_bytes,
        )
    )
    metrics.increment("notes_read")
    return NoteResponse.from_note(note)
