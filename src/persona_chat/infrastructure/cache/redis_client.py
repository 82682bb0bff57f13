"""Redis connection shared by server-side session stores."""

from __future__ import annotations

import redis.asyncio as redis
import structlog

from persona_chat.config import RedisSettings

logger = structlog.get_logger(__name__)


class RedisClient:
    """Thin async wrapper storing plain string values."""

    def __init__(self, settings: RedisSettings) -> None:
        self._settings = settings
        self._pool: redis.ConnectionPool | None = None
        self._client: redis.Redis | None = None

    @property
    def client(self) -> redis.Redis:
        if self._client is None:
            raise RuntimeError("Redis client not connected")
        return self._client

    async def connect(self) -> None:
        """Open the pool and verify the server answers."""
        self._pool = redis.ConnectionPool.from_url(
            self._settings.url,
            max_connections=self._settings.max_connections,
            decode_responses=True,
        )
        self._client = redis.Redis(connection_pool=self._pool)
        await self._client.ping()
        logger.info("Redis connected", host=self._settings.host, db=self._settings.db)

    async def close(self) -> None:
        if self._client is not None:
            await self._client.aclose()
            self._client = None
        if self._pool is not None:
            await self._pool.disconnect()
            self._pool = None

    async def get(self, key: str) -> str | None:
        return await self.client.get(key)

    async def set(self, key: str, value: str, ttl: int | None = None) -> None:
        """Store ``value``; ``ttl`` in seconds, no expiry when None."""
        await self.client.set(key, value, ex=ttl)

    async def delete(self, key: str) -> bool:
        return await self.client.delete(key) > 0


_redis_client: RedisClient | None = None


async def get_redis_client(settings: RedisSettings) -> RedisClient:
    """Return the process-wide client, connecting on first use."""
    global _redis_client
    if _redis_client is None:
        client = RedisClient(settings)
        await client.connect()
        _redis_client = client
    return _redis_client


async def close_redis_client() -> None:
    """Close the process-wide client if one was opened."""
    global _redis_client
    if _redis_client is not None:
        await _redis_client.close()
        _redis_client = None
