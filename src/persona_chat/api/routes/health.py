"""Health check endpoints."""

from datetime import datetime, timezone
from typing import Any

from fastapi import APIRouter, Request, Response
from prometheus_client import CONTENT_TYPE_LATEST, generate_latest
from pydantic import BaseModel

router = APIRouter()


class HealthResponse(BaseModel):
    """Health check response."""

    status: str
    timestamp: datetime
    version: str
    environment: str
    checks: dict[str, Any]


class ReadinessResponse(BaseModel):
    """Readiness check response."""

    ready: bool
    checks: dict[str, bool]


@router.get("/health", response_model=HealthResponse)
async def health_check(request: Request) -> HealthResponse:
    """Basic health check endpoint used by load balancer probes."""
    from persona_chat import __version__

    settings = request.app.state.settings

    return HealthResponse(
        status="healthy",
        timestamp=datetime.now(timezone.utc),
        version=__version__,
        environment=settings.environment,
        checks={"persona_mode": settings.assistant.persona.mode},
    )


@router.get("/health/ready", response_model=ReadinessResponse)
async def readiness_check(request: Request) -> ReadinessResponse:
    """
    Readiness check endpoint.

    Ready once an assistant backend is configured; the avatar proxy is
    optional and reported but does not gate readiness.
    """
    settings = request.app.state.settings
    checks = {
        "assistant": getattr(request.app.state, "generator", None) is not None,
        "avatar": settings.avatar.api_key is not None,
    }
    return ReadinessResponse(ready=checks["assistant"], checks=checks)


@router.get("/health/live")
async def liveness_check() -> dict[str, str]:
    """Liveness probe."""
    return {"status": "ok"}


@router.get("/metrics")
async def metrics() -> Response:
    """Prometheus metrics endpoint."""
    return Response(
        content=generate_latest(),
        media_type=CONTENT_TYPE_LATEST,
    )
