"""Remote assistant backends."""

import structlog

from persona_chat.config import AssistantSettings
from persona_chat.infrastructure.assistants.base import AssistantBackend
from persona_chat.infrastructure.assistants.openai import OpenAIAssistantsBackend

logger = structlog.get_logger(__name__)


def create_backend(settings: AssistantSettings) -> AssistantBackend:
    """Build the configured assistant backend."""
    if not settings.api_key:
        raise ValueError("Assistant backend not configured: set ASSISTANT_API_KEY")
    if not settings.assistant_id:
        raise ValueError("Assistant backend not configured: set ASSISTANT_ASSISTANT_ID")

    backend = OpenAIAssistantsBackend(
        api_key=settings.api_key.get_secret_value(),
        timeout=settings.timeout,
        max_retries=settings.max_retries,
        base_url=settings.base_url,
    )
    logger.info("Assistant backend initialized", backend=backend.name)
    return backend


__all__ = [
    "AssistantBackend",
    "OpenAIAssistantsBackend",
    "create_backend",
]
