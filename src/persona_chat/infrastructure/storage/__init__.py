"""Session identifier storage."""

from persona_chat.config import Settings
from persona_chat.infrastructure.cache.redis_client import get_redis_client
from persona_chat.infrastructure.storage.session_store import (
    FileSessionStore,
    InMemorySessionStore,
    RedisSessionStore,
    SessionStore,
)

SESSION_FILE_NAME = "session.json"


async def create_session_store(settings: Settings) -> SessionStore:
    """Build the store selected by ``SESSION_STORE``."""
    kind = settings.session.store
    if kind == "memory":
        return InMemorySessionStore()
    if kind == "redis":
        redis = await get_redis_client(settings.redis)
        return RedisSessionStore(redis, ttl_seconds=settings.session.redis_ttl_seconds)
    return FileSessionStore(settings.session.state_dir / SESSION_FILE_NAME)


__all__ = [
    "FileSessionStore",
    "InMemorySessionStore",
    "RedisSessionStore",
    "SessionStore",
    "create_session_store",
]
