"""FastAPI application factory."""

from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

import httpx
import structlog
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import ORJSONResponse

from persona_chat import __version__
from persona_chat.api.middleware.auth_gate import create_auth_gate
from persona_chat.api.middleware.error_handler import error_handler_middleware
from persona_chat.api.routes import avatar, chat, health
from persona_chat.config import Settings, get_settings
from persona_chat.core.conversation.generator import ResponseGenerator
from persona_chat.infrastructure.assistants import create_backend
from persona_chat.infrastructure.observability.telemetry import setup_telemetry

logger = structlog.get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Create outbound clients unless they were injected before startup."""
    settings: Settings = app.state.settings
    owned_http_client: httpx.AsyncClient | None = None

    if getattr(app.state, "generator", None) is None:
        try:
            backend = create_backend(settings.assistant)
        except ValueError as e:
            logger.warning("Chat endpoint disabled", reason=str(e))
        else:
            app.state.generator = ResponseGenerator(backend, settings.assistant)

    if getattr(app.state, "http_client", None) is None:
        owned_http_client = httpx.AsyncClient()
        app.state.http_client = owned_http_client

    yield

    if owned_http_client is not None:
        await owned_http_client.aclose()


def create_app(settings: Settings | None = None) -> FastAPI:
    """Create and configure the FastAPI application."""
    if settings is None:
        settings = get_settings()

    if settings.telemetry.enabled:
        setup_telemetry(settings.telemetry)

    app = FastAPI(
        title="Persona Chat API",
        description="Persona-constrained assistant conversations over a thread + run service",
        version=__version__,
        docs_url="/docs" if settings.is_development else None,
        redoc_url="/redoc" if settings.is_development else None,
        openapi_url="/openapi.json" if settings.is_development else None,
        default_response_class=ORJSONResponse,
        lifespan=lifespan,
    )

    app.state.settings = settings
    app.state.generator = None
    app.state.http_client = None

    _add_middleware(app, settings)
    _include_routers(app)

    return app


def _add_middleware(app: FastAPI, settings: Settings) -> None:
    """Add middleware to the application. The last one added runs first."""
    app.middleware("http")(error_handler_middleware)

    if settings.auth.enabled:
        app.middleware("http")(create_auth_gate(settings.auth))

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.api.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )


def _include_routers(app: FastAPI) -> None:
    """Include API routers."""
    app.include_router(health.router, tags=["Health"])
    app.include_router(chat.router, prefix="/api/v1", tags=["Chat"])
    app.include_router(avatar.router, prefix="/api", tags=["Avatar"])


def get_app() -> FastAPI:
    """App factory for ``uvicorn --factory``."""
    return create_app()
