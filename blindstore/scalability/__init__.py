"""Scalability layer: per-client rate limiting, distributed sweep lock. No FastAPI."""

from blindstore.scalability.distributed_lock import DistributedLock
from blindstore.scalability.rate_limiter import (
    ClientRateLimiter,
    InMemoryRateLimitBackend,
    OperationClass,
)

__all__ = [
    "ClientRateLimiter",
    "DistributedLock",
    "InMemoryRateLimitBackend",
    "OperationClass",
]
