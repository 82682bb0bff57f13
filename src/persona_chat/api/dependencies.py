"""FastAPI dependency injection."""

from typing import Annotated

import httpx
from fastapi import Depends, Request

from persona_chat.api.middleware.error_handler import ServiceUnavailableError
from persona_chat.config import Settings
from persona_chat.core.conversation.generator import ResponseGenerator


def get_settings_dep(request: Request) -> Settings:
    """Get the settings the app was created with."""
    return request.app.state.settings


SettingsDep = Annotated[Settings, Depends(get_settings_dep)]


async def get_generator(request: Request) -> ResponseGenerator:
    """Get the response generator from app state."""
    generator = getattr(request.app.state, "generator", None)
    if generator is None:
        raise ServiceUnavailableError("Assistant backend not configured")
    return generator


GeneratorDep = Annotated[ResponseGenerator, Depends(get_generator)]


async def get_http_client(request: Request) -> httpx.AsyncClient:
    """Get the shared outbound HTTP client from app state."""
    return request.app.state.http_client


HTTPClientDep = Annotated[httpx.AsyncClient, Depends(get_http_client)]
