"""OpenTelemetry setup and configuration."""

import structlog
from opentelemetry import trace
from opentelemetry.exporter.otlp.proto.grpc.trace_exporter import OTLPSpanExporter
from opentelemetry.instrumentation.fastapi import FastAPIInstrumentor
from opentelemetry.instrumentation.httpx import HTTPXClientInstrumentor
from opentelemetry.sdk.resources import SERVICE_NAME, Resource
from opentelemetry.sdk.trace import TracerProvider
from opentelemetry.sdk.trace.export import BatchSpanProcessor

from persona_chat.config import TelemetrySettings

logger = structlog.get_logger(__name__)


def setup_telemetry(settings: TelemetrySettings) -> None:
    """Setup OpenTelemetry tracing with an OTLP exporter."""
    if not settings.enabled:
        logger.info("Telemetry disabled")
        return

    logger.info(
        "Setting up OpenTelemetry",
        service_name=settings.service_name,
        endpoint=settings.exporter_otlp_endpoint,
    )

    provider = TracerProvider(resource=Resource(attributes={SERVICE_NAME: settings.service_name}))
    provider.add_span_processor(
        BatchSpanProcessor(
            OTLPSpanExporter(
                endpoint=settings.exporter_otlp_endpoint,
                insecure=settings.exporter_otlp_insecure,
            )
        )
    )
    trace.set_tracer_provider(provider)

    FastAPIInstrumentor().instrument()
    # The OpenAI SDK and the avatar token proxy both go through httpx
    HTTPXClientInstrumentor().instrument()

    logger.info("OpenTelemetry setup complete")


def get_tracer(name: str) -> trace.Tracer:
    """Get a tracer for a module."""
    return trace.get_tracer(name)


class ChatSpanAttributes:
    """Span attribute names for conversation generation."""

    ASSISTANT_ID = "assistant.id"
    PERSONA_MODE = "assistant.persona_mode"
    SESSION_ID = "session.id"
    RUN_ID = "run.id"
    RUN_STATUS = "run.status"
    ERROR_KIND = "error.kind"
