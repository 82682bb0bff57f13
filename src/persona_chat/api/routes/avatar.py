"""Streaming avatar token proxy."""

import httpx
import structlog
from fastapi import APIRouter
from pydantic import BaseModel

from persona_chat.api.dependencies import HTTPClientDep, SettingsDep
from persona_chat.api.middleware.error_handler import ServiceUnavailableError, UpstreamError

logger = structlog.get_logger(__name__)
router = APIRouter()

CREATE_TOKEN_PATH = "/v1/streaming.create_token"


class TokenResponse(BaseModel):
    """Short-lived streaming token."""

    token: str


@router.get("/heygen-token", response_model=TokenResponse)
async def create_streaming_token(settings: SettingsDep, http_client: HTTPClientDep) -> TokenResponse:
    """Exchange the server-held API key for a streaming token. One shot, no retry."""
    avatar = settings.avatar
    if avatar.api_key is None:
        raise ServiceUnavailableError("Avatar token service not configured")

    url = avatar.base_url.rstrip("/") + CREATE_TOKEN_PATH
    try:
        response = await http_client.post(
            url,
            headers={
                "x-api-key": avatar.api_key.get_secret_value(),
                "Content-Type": "application/json",
            },
            timeout=avatar.timeout,
        )
        response.raise_for_status()
        token = response.json()["data"]["token"]
    except httpx.HTTPStatusError as e:
        logger.warning("Avatar token request rejected", status_code=e.response.status_code)
        raise UpstreamError(
            "Avatar token request failed",
            details={"status_code": e.response.status_code},
        ) from e
    except (httpx.HTTPError, KeyError, TypeError, ValueError) as e:
        logger.warning("Avatar token request failed", error=str(e))
        raise UpstreamError("Avatar token request failed") from e

    if not isinstance(token, str) or not token:
        raise UpstreamError("Avatar token response had no token")

    return TokenResponse(token=token)
