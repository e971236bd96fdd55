"""Redis-based distributed lock (SET NX EX with owner token). Serializes expiry sweeps across service instances."""

import uuid
from typing import Protocol


class LockBackend(Protocol):
    """Minimal Redis operations for the lock. Injected; no global state."""

    async def set_nx_ex(self, key: str, value: str, ttl: int) -> bool: ...
    async def delete_if_value(self, key: str, value: str) -> bool: ...


LOCK_PREFIX = "blindstore:lock:"


class DistributedLock:
    """
    Lock held by at most one process at a time. Each acquire stores a fresh token so only
    the holder can release; the TTL frees the lock if the holder dies mid-sweep.
    """

    def __init__(self, backend: LockBackend, key_prefix: str = LOCK_PREFIX) -> None:
        self._backend = backend
        self._prefix = key_prefix
        self._tokens: dict[str, str] = {}

    def _key(self, name: str) -> str:
        return f"{self._prefix}{name}"

    async def acquire(self, name: str, ttl: int) -> bool:
        """Try once to take the lock. Returns False if another holder has it."""
        token = uuid.uuid4().hex
        acquired = await self._backend.set_nx_ex(self._key(name), token, ttl)
        if acquired:
            self._tokens[name] = token
        return acquired

    async def release(self, name: str) -> None:
        """Release the lock only if we hold it (atomic compare-and-delete)."""
        token = self._tokens.pop(name, None)
        if token is not None:
            await self._backend.delete_if_value(self._key(name), token)
