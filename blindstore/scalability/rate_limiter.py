"""Per-client fixed-window rate limiter with independent read and write budgets. Metrics-integrated."""

import logging
import math
import threading
import time
from enum import Enum
from typing import Callable, Optional, Protocol

from blindstore.observability.metrics import MetricsCollector


class OperationClass(str, Enum):
    READ = "read"
    WRITE = "write"


class RateLimitBackend(Protocol):
    """Backend for rate limit state (e.g. Redis). Injected."""

    async def incr_window(self, key: str, window_seconds: float) -> int:
        """Atomically increment the counter for key and return the new value. Key lives at least one window."""
        ...


class InMemoryRateLimitBackend:
    """In-memory counters: key -> count. For tests or single-node. Thread-safe; stale keys pruned."""

    def __init__(self, clock: Callable[[], float] = time.monotonic) -> None:
        self._counts: dict[str, int] = {}
        self._expires: dict[str, float] = {}
        self._lock = threading.Lock()
        self._clock = clock
        self._next_prune = 0.0

    def _prune(self, now: float) -> None:
        for key in [k for k, expires in self._expires.items() if expires <= now]:
            self._expires.pop(key, None)
            self._counts.pop(key, None)

    async def incr_window(self, key: str, window_seconds: float) -> int:
        now = self._clock()
        with self._lock:
            if now >= self._next_prune:
                self._prune(now)
                self._next_prune = now + window_seconds
            count = self._counts.get(key, 0) + 1
            self._counts[key] = count
            self._expires.setdefault(key, now + window_seconds)
            return count

    def __len__(self) -> int:
        return len(self._counts)


class ClientRateLimiter:
    """
    Rate limiter keyed by (client address, operation class). Windows are aligned to wall-clock
    boundaries (floor(now / window)), so every counter resets when the window rolls over.
    A backend outage fails open: the request proceeds and the error is logged and counted.
    """

    def __init__(
        self,
        backend: RateLimitBackend,
        read_requests_per_window: int = 100,
        write_requests_per_window: int = 30,
        window_seconds: float = 60,
        metrics: Optional[MetricsCollector] = None,
        logger: Optional[logging.Logger] = None,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self._backend = backend
        self._limits = {
            OperationClass.READ: read_requests_per_window,
            OperationClass.WRITE: write_requests_per_window,
        }
        self._window = window_seconds
        self._metrics = metrics
        self._logger = logger or logging.getLogger(__name__)
        self._clock = clock
        self._key_prefix = "rate:client:"

    def limit_for(self, operation: OperationClass) -> int:
        return self._limits[operation]

    def _key(self, client_key: str, operation: OperationClass, window_index: int) -> str:
        return f"{self._key_prefix}{operation.value}:{client_key}:{window_index}"

    async def allow(self, client_key: str, operation: OperationClass) -> bool:
        """Count this request against the client's budget for operation. True if still within budget."""
        window_index = int(self._clock() // self._window)
        key = self._key(client_key, operation, window_index)
        try:
            count = await self._backend.incr_window(key, self._window)
        except Exception as e:
            self._logger.warning(
                "rate_limiter_backend_error",
                extra={"operation": operation.value, "error": str(e)},
            )
            if self._metrics:
                self._metrics.increment("rate_limiter_backend_error", operation=operation.value)
            return True
        allowed = count <= self._limits[operation]
        if not allowed:
            self._logger.info(
                "rate_limit_exceeded",
                extra={"client": client_key, "operation": operation.value, "count": count},
            )
            if self._metrics:
                self._metrics.increment("rate_limit_exceeded", operation=operation.value)
        return allowed

    def retry_after(self) -> int:
        """Whole seconds until the current window ends (at least 1)."""
        remaining = self._window - (self._clock() % self._window)
        return max(1, math.ceil(remaining))
