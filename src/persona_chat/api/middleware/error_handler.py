"""Global error handling middleware."""

import traceback
from typing import Any
from uuid import uuid4

import structlog
from fastapi import Request, Response
from fastapi.responses import ORJSONResponse
from starlette.middleware.base import RequestResponseEndpoint

from persona_chat.core.conversation.errors import ChatError, ErrorKind
from persona_chat.infrastructure.observability.logging import bind_context, clear_context

logger = structlog.get_logger(__name__)

_CHAT_ERROR_STATUS: dict[ErrorKind, int] = {
    ErrorKind.MISSING_USER_MESSAGE: 422,
    ErrorKind.RUN_TIMEOUT: 504,
}


class APIError(Exception):
    """Base exception for API errors."""

    def __init__(
        self,
        message: str,
        status_code: int = 500,
        error_code: str = "INTERNAL_ERROR",
        details: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.status_code = status_code
        self.error_code = error_code
        self.details = details or {}


class ServiceUnavailableError(APIError):
    """A required backend is not configured."""

    def __init__(self, message: str) -> None:
        super().__init__(
            message=message,
            status_code=503,
            error_code="SERVICE_UNAVAILABLE",
        )


class UpstreamError(APIError):
    """A third-party service call failed."""

    def __init__(self, message: str, details: dict[str, Any] | None = None) -> None:
        super().__init__(
            message=message,
            status_code=502,
            error_code="UPSTREAM_ERROR",
            details=details or {},
        )


def _error_response(status_code: int, content: dict[str, Any]) -> ORJSONResponse:
    return ORJSONResponse(status_code=status_code, content={"error": content})


async def error_handler_middleware(
    request: Request,
    call_next: RequestResponseEndpoint,
) -> Response:
    """Handle errors globally and return consistent error responses."""
    clear_context()
    bind_context(request_id=request.headers.get("x-request-id") or uuid4().hex, path=request.url.path)
    try:
        return await call_next(request)
    except ChatError as e:
        status_code = _CHAT_ERROR_STATUS.get(e.kind, 502)
        logger.warning(
            "Chat error occurred",
            error_code=e.kind.value,
            message=str(e),
            status_code=status_code,
        )
        return _error_response(status_code, e.to_dict())
    except APIError as e:
        logger.warning(
            "API error occurred",
            error_code=e.error_code,
            message=e.message,
            status_code=e.status_code,
        )
        return _error_response(
            e.status_code,
            {"code": e.error_code, "message": e.message, "details": e.details},
        )
    except Exception as e:
        logger.exception(
            "Unexpected error occurred",
            error=str(e),
            traceback=traceback.format_exc(),
        )
        return _error_response(
            500,
            {"code": "INTERNAL_ERROR", "message": "An unexpected error occurred", "details": {}},
        )
    finally:
        clear_context()
