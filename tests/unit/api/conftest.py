"""Fixtures for API unit tests: in-memory repositories, deterministic rate limiter, AsyncClient."""

import base64

import pytest
from httpx import ASGITransport, AsyncClient

from blindstore.api import dependencies
from blindstore.api.dependencies import build_components
from blindstore.config.settings import AppSettings
from blindstore.infrastructure.memory.audit_repository_memory import InMemoryAuditRepository
from blindstore.infrastructure.memory.note_repository_memory import InMemoryNoteRepository
from blindstore.main import app
from blindstore.scalability.rate_limiter import ClientRateLimiter, InMemoryRateLimitBackend

READ_LIMIT = 50
WRITE_LIMIT = 50


@pytest.fixture
def test_note():
    return {
        "ciphertext": base64.b64encode(b"sample_ciphertext").decode(),
        "hmac": base64.b64encode(b"sample_hmac").decode(),
    }


@pytest.fixture
def settings():
    return AppSettings(
        environment="test",
        storage_backend="memory",
        rate_limit_backend="memory",
        rate_limit_read_requests=READ_LIMIT,
        rate_limit_write_requests=WRITE_LIMIT,
        sweep_enabled=False,
        audit_retry_backoff_seconds=0,
        frontend_url="http://notes.test",
    )


@pytest.fixture
def note_repository():
    return InMemoryNoteRepository()


@pytest.fixture
def audit_repository():
    return InMemoryAuditRepository()


@pytest.fixture
def components(settings, note_repository, audit_repository):
    c = build_components(settings, note_repository=note_repository, audit_repository=audit_repository)
    # Frozen clock: every request of a test falls in the same rate-limit window
    c.rate_limiter = ClientRateLimiter(
        backend=InMemoryRateLimitBackend(),
        read_requests_per_window=READ_LIMIT,
        write_requests_per_window=WRITE_LIMIT,
        window_seconds=60,
        metrics=c.metrics,
        clock=lambda: 1_000_020.0,
    )
    return c


@pytest.fixture
def app_with_overrides(components):
    """App wired to the test components."""
    app.dependency_overrides[dependencies.get_components] = lambda: components
    yield app
    app.dependency_overrides.clear()


@pytest.fixture
async def client(app_with_overrides, components):
    """Async HTTP client for testing; audit queue drained on teardown."""
    transport = ASGITransport(app=app_with_overrides)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac
    await components.audit_logger.close()
