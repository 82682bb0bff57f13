"""Structured logging configuration."""

import logging
import sys
from typing import Any, TextIO

import structlog
from structlog.types import Processor

from persona_chat.config import TelemetrySettings

# Third-party loggers that log every HTTP request at INFO
_NOISY_LOGGERS = ("httpx", "httpcore", "openai")


def setup_logging(settings: TelemetrySettings, stream: TextIO | None = None) -> None:
    """Configure structlog.

    DEBUG gets colored console output; any other level renders JSON lines.
    The CLI passes ``stream=sys.stderr`` so logs never mix with the transcript.
    """
    log_level = getattr(logging, settings.log_level.upper(), logging.INFO)
    stream = stream or sys.stdout

    shared_processors: list[Processor] = [
        structlog.contextvars.merge_contextvars,
        structlog.processors.add_log_level,
        structlog.processors.StackInfoRenderer(),
        structlog.processors.TimeStamper(fmt="iso"),
    ]

    if settings.log_level.upper() == "DEBUG":
        processors: list[Processor] = [
            *shared_processors,
            structlog.dev.ConsoleRenderer(colors=stream.isatty()),
        ]
    else:
        processors = [
            *shared_processors,
            structlog.processors.format_exc_info,
            structlog.processors.JSONRenderer(),
        ]

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.make_filtering_bound_logger(log_level),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(file=stream),
        cache_logger_on_first_use=True,
    )

    logging.basicConfig(format="%(message)s", stream=stream, level=log_level)
    for name in _NOISY_LOGGERS:
        logging.getLogger(name).setLevel(max(log_level, logging.WARNING))


def bind_context(**kwargs: Any) -> None:
    """Bind context variables for logging."""
    structlog.contextvars.bind_contextvars(**kwargs)


def clear_context() -> None:
    """Clear context variables."""
    structlog.contextvars.clear_contextvars()
