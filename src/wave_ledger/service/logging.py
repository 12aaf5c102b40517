"""Structured logging configuration for the Wave Ledger service.

Configures structlog for JSON output in production, pretty output in development.
"""

from __future__ import annotations

import logging
import os
import sys
from typing import Any

import structlog

# Wave messages are unbounded; log entries carry at most this much of one
MESSAGE_PREVIEW_CHARS = 120


def clip_wave_message(logger: Any, method_name: str, event_dict: dict) -> dict:
    """Shorten a ``message`` field to a preview, recording its full length."""
    message = event_dict.get("message")
    if isinstance(message, str) and len(message) > MESSAGE_PREVIEW_CHARS:
        event_dict["message"] = message[:MESSAGE_PREVIEW_CHARS] + "..."
        event_dict["message_chars"] = len(message)
    return event_dict


def configure_logging(
    level: str = "INFO",
    json_output: bool | None = None,
    service_name: str = "wave-ledger",
    storage_backend: str | None = None,
) -> None:
    """Configure structured logging for the application.

    Args:
        level: Log level (DEBUG, INFO, WARNING, ERROR)
        json_output: Force JSON output. If None, auto-detect based on environment
        service_name: Service name to include in all log entries
        storage_backend: Ledger backend to include in all log entries
    """
    if json_output is None:
        json_output = not sys.stderr.isatty() or os.getenv("WAVE_LEDGER_LOG_JSON") == "1"

    def add_service_name(logger: Any, method_name: str, event_dict: dict) -> dict:
        event_dict.setdefault("service", service_name)
        if storage_backend:
            event_dict.setdefault("storage", storage_backend)
        return event_dict

    shared_processors: list[Any] = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_log_level,
        structlog.stdlib.add_logger_name,
        add_service_name,
        clip_wave_message,
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.UnicodeDecoder(),
    ]

    if json_output:
        shared_processors.append(structlog.processors.format_exc_info)
        renderer = structlog.processors.JSONRenderer()
    else:
        renderer = structlog.dev.ConsoleRenderer(colors=True)

    structlog.configure(
        processors=shared_processors
        + [
            structlog.stdlib.ProcessorFormatter.wrap_for_formatter,
        ],
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )

    # Route standard library logging (persistence layer, uvicorn) through structlog
    formatter = structlog.stdlib.ProcessorFormatter(
        foreign_pre_chain=shared_processors,
        processors=[
            structlog.stdlib.ProcessorFormatter.remove_processors_meta,
            renderer,
        ],
    )

    handler = logging.StreamHandler()
    handler.setFormatter(formatter)

    root_logger = logging.getLogger()
    root_logger.handlers.clear()
    root_logger.addHandler(handler)
    root_logger.setLevel(getattr(logging, level.upper()))

    # Set levels for noisy third-party loggers
    logging.getLogger("uvicorn.access").setLevel(logging.WARNING)
    logging.getLogger("httpx").setLevel(logging.WARNING)


def get_logger(name: str) -> structlog.stdlib.BoundLogger:
    """Get a structured logger instance.

    Args:
        name: Logger name (typically __name__)

    Returns:
        Configured structured logger
    """
    return structlog.get_logger(name)


def bind_context(**kwargs) -> None:
    """Bind context variables for all subsequent log entries in this context.

    Example:
        bind_context(correlation_id="abc123")
        logger.info("wave.submitted")  # Includes correlation_id
    """
    structlog.contextvars.bind_contextvars(**kwargs)


def clear_context() -> None:
    """Clear all bound context variables."""
    structlog.contextvars.clear_contextvars()


__all__ = [
    "MESSAGE_PREVIEW_CHARS",
    "clip_wave_message",
    "configure_logging",
    "get_logger",
    "bind_context",
    "clear_context",
]
