"""Durable storage for the held session identifier.

A store holds string values under keys; the session client only ever uses
one key. Absent key means the next call starts a fresh remote session.
"""

from __future__ import annotations

import asyncio
import os
from abc import ABC, abstractmethod
from pathlib import Path

import orjson
import structlog

from persona_chat.infrastructure.cache.redis_client import RedisClient

logger = structlog.get_logger(__name__)


class SessionStore(ABC):
    """Abstract key/value store for session identifiers."""

    @abstractmethod
    async def get(self, key: str) -> str | None:
        """Return the stored value, or None when absent."""
        ...

    @abstractmethod
    async def set(self, key: str, value: str) -> None:
        """Store ``value`` under ``key``."""
        ...

    @abstractmethod
    async def delete(self, key: str) -> None:
        """Remove ``key``. Missing keys are ignored."""
        ...


class InMemorySessionStore(SessionStore):
    """In-memory store for development/testing."""

    def __init__(self, initial: dict[str, str] | None = None) -> None:
        self._data: dict[str, str] = dict(initial or {})

    async def get(self, key: str) -> str | None:
        return self._data.get(key)

    async def set(self, key: str, value: str) -> None:
        self._data[key] = value

    async def delete(self, key: str) -> None:
        self._data.pop(key, None)


class FileSessionStore(SessionStore):
    """JSON file store, the terminal equivalent of browser local storage."""

    def __init__(self, path: Path) -> None:
        self._path = path

    @property
    def path(self) -> Path:
        return self._path

    def _read(self) -> dict[str, str]:
        try:
            data = orjson.loads(self._path.read_bytes())
        except FileNotFoundError:
            return {}
        except orjson.JSONDecodeError:
            logger.warning("Session state file is corrupt, ignoring it", path=str(self._path))
            return {}
        if not isinstance(data, dict):
            return {}
        return {k: v for k, v in data.items() if isinstance(v, str)}

    def _write(self, data: dict[str, str]) -> None:
        self._path.parent.mkdir(parents=True, exist_ok=True)
        tmp_path = self._path.with_suffix(self._path.suffix + ".tmp")
        tmp_path.write_bytes(orjson.dumps(data, option=orjson.OPT_INDENT_2))
        os.replace(tmp_path, self._path)

    def _update(self, key: str, value: str | None) -> None:
        data = self._read()
        if value is not None:
            data[key] = value
        elif data.pop(key, None) is None:
            return
        self._write(data)

    async def get(self, key: str) -> str | None:
        loop = asyncio.get_running_loop()
        data = await loop.run_in_executor(None, self._read)
        return data.get(key)

    async def set(self, key: str, value: str) -> None:
        loop = asyncio.get_running_loop()
        await loop.run_in_executor(None, self._update, key, value)

    async def delete(self, key: str) -> None:
        loop = asyncio.get_running_loop()
        await loop.run_in_executor(None, self._update, key, None)


class RedisSessionStore(SessionStore):
    """Redis-backed store for server-hosted session clients."""

    def __init__(self, redis: RedisClient, prefix: str = "persona_chat:", ttl_seconds: int | None = None) -> None:
        self._redis = redis
        self._prefix = prefix
        self._ttl = ttl_seconds

    def _key(self, key: str) -> str:
        return f"{self._prefix}{key}"

    async def get(self, key: str) -> str | None:
        value = await self._redis.get(self._key(key))
        return value if isinstance(value, str) else None

    async def set(self, key: str, value: str) -> None:
        await self._redis.set(self._key(key), value, ttl=self._ttl)

    async def delete(self, key: str) -> None:
        await self._redis.delete(self._key(key))
