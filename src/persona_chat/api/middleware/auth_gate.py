"""Cookie authentication gate."""

from collections.abc import Awaitable, Callable

import structlog
from fastapi import Request, Response
from fastapi.responses import RedirectResponse
from starlette.middleware.base import RequestResponseEndpoint

from persona_chat.config import AuthSettings

logger = structlog.get_logger(__name__)

NO_CACHE_HEADERS = {
    "Cache-Control": "no-store, no-cache, must-revalidate, proxy-revalidate",
    "Pragma": "no-cache",
    "Expires": "0",
}

Middleware = Callable[[Request, RequestResponseEndpoint], Awaitable[Response]]


def _disable_caching(response: Response) -> Response:
    response.headers.update(NO_CACHE_HEADERS)
    return response


def is_public_path(path: str, public_paths: list[str]) -> bool:
    """Exact match or a sub-path of an allow-listed prefix."""
    return any(path == p or path.startswith(p.rstrip("/") + "/") for p in public_paths)


def create_auth_gate(settings: AuthSettings) -> Middleware:
    """Build the middleware.

    Unauthenticated requests outside the allow-list are redirected to the
    login path; authenticated visits to the login path go to the home path.
    Every non-login response gets cache-disabling headers.
    """

    async def auth_gate_middleware(request: Request, call_next: RequestResponseEndpoint) -> Response:
        path = request.url.path
        is_login = path == settings.login_path
        authenticated = bool(request.cookies.get(settings.cookie_name))

        if not authenticated and not is_login and not is_public_path(path, settings.public_paths):
            logger.debug("Redirecting unauthenticated request", path=path)
            return _disable_caching(RedirectResponse(url=settings.login_path, status_code=307))

        if authenticated and is_login:
            return RedirectResponse(url=settings.home_path, status_code=307)

        response = await call_next(request)
        if not is_login:
            _disable_caching(response)
        return response

    return auth_gate_middleware
