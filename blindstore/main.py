# blindstore/main.py

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.responses import JSONResponse

from blindstore.api.dependencies import build_components
from blindstore.api.middleware import (
    AccessLogMiddleware,
    CorrelationIdMiddleware,
    RequestSizeLimitMiddleware,
)
from blindstore.api.routers import health, notes
from blindstore.application.exceptions import (
    ApplicationError,
    IdentifierExhaustedError,
    NoteGoneError,
    NoteNotFoundError,
    RateLimitedError,
    StorageFailureError,
)
from blindstore.config.logging import configure_logging
from blindstore.config.settings import get_settings
from blindstore.domain.exceptions import DomainError, PayloadTooLargeError

settings = get_settings()
configure_logging(settings.log_level)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Build components once per application; run the expiry sweeper for the app's lifetime."""
    components = getattr(app.state, "components", None) or build_components(settings)
    app.state.components = components
    await components.startup()
    logger.info("startup_complete", extra={"environment": settings.environment})
    try:
        yield
    finally:
        await components.shutdown()
        logger.info("shutdown_complete")


app = FastAPI(
    title=settings.app_name,
    version=settings.version,
    debug=settings.debug,
    lifespan=lifespan,
)

# Middleware order: last added runs first (outermost). Request flow: CorrelationId -> AccessLog -> RequestSizeLimit.
app.add_middleware(RequestSizeLimitMiddleware, max_bytes=settings.max_body_bytes)
app.add_middleware(AccessLogMiddleware)
app.add_middleware(CorrelationIdMiddleware)


@app.exception_handler(PayloadTooLargeError)
async def payload_too_large_handler(request, exc: PayloadTooLargeError):
    return JSONResponse(status_code=413, content={"detail": exc.message})


@app.exception_handler(DomainError)
async def domain_error_handler(request, exc: DomainError):
    return JSONResponse(status_code=400, content={"detail": exc.message})


@app.exception_handler(RateLimitedError)
async def rate_limited_handler(request, exc: RateLimitedError):
    headers = {"Retry-After": str(exc.retry_after)} if exc.retry_after else None
    return JSONResponse(status_code=429, content={"detail": exc.message}, headers=headers)


@app.exception_handler(NoteNotFoundError)
async def note_not_found_handler(request, exc: NoteNotFoundError):
    return JSONResponse(status_code=404, content={"detail": "Note not found"})


@app.exception_handler(NoteGoneError)
async def note_gone_handler(request, exc: NoteGoneError):
    return JSONResponse(status_code=410, content={"detail": "Note has expired"})


@app.exception_handler(StorageFailureError)
async def storage_failure_handler(request, exc: StorageFailureError):
    # exc.message carries backend detail; it is logged, never returned
    logger.error("storage_failure_response", extra={"error": exc.message, "path": request.url.path})
    return JSONResponse(
        status_code=503,
        content={"detail": "Service temporarily unavailable"},
    )


@app.exception_handler(IdentifierExhaustedError)
async def identifier_exhausted_handler(request, exc: IdentifierExhaustedError):
    logger.error("identifier_exhausted", extra={"error": exc.message})
    return JSONResponse(status_code=500, content={"detail": "Could not store note"})


@app.exception_handler(ApplicationError)
async def application_error_handler(request, exc: ApplicationError):
    return JSONResponse(status_code=500, content={"detail": "Internal server error"})


@app.exception_handler(Exception)
async def unexpected_error_handler(request, exc: Exception):
    logger.error("unhandled_error", exc_info=exc, extra={"path": request.url.path})
    return JSONResponse(
        status_code=500,
        content={"detail": "Internal server error"},
    )


# Routers: /health, /metrics, /api/note
app.include_router(health.router)
app.include_router(notes.router, prefix="/api/note")
