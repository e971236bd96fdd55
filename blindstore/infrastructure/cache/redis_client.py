# blindstore/infrastructure/cache/redis_client.py

import math

import redis.asyncio as redis


class RedisClient:
    """Thin async Redis wrapper. Serves as rate limit backend and distributed lock backend."""

    def __init__(self, url: str, timeout_seconds: float = 1.0):
        self.client = redis.from_url(
            url,
            decode_responses=True,
            socket_timeout=timeout_seconds,
            socket_connect_timeout=timeout_seconds,
        )

    async def incr_window(self, key: str, window_seconds: float) -> int:
        """INCR and EXPIRE in one MULTI so a counter never outlives its window."""
        async with self.client.pipeline(transaction=True) as pipe:
            pipe.incr(key)
            pipe.expire(key, max(1, math.ceil(window_seconds)) + 1)
            count, _ = await pipe.execute()
        return int(count)

    async def set_nx_ex(self, key: str, value: str, ttl: int) -> bool:
        """Set key to value only if not exists, with TTL. Returns True if key was set."""
        return bool(await self.client.set(key, value, nx=True, ex=ttl))

    async def delete_if_value(self, key: str, value: str) -> bool:
        """Delete key only if its value equals value (atomic). Returns True if deleted."""
        script = "if redis.call('get', KEYS[1]) == ARGV[1] then return redis.call('del', KEYS[1]) else return 0 end"
        result = await self.client.eval(script, 1, key, value)
        return bool(result)

    async def ping(self) -> bool:
        return bool(await self.client.ping())

    async def close(self) -> None:
        await self.client.aclose()
