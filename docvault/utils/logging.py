"""Structured logging setup using structlog.

One shared processor chain feeds either a coloured ConsoleRenderer for local
work or a JSONRenderer for production.  The renderer is picked from the
``APP_ENV`` environment variable (default ``"development"``) or forced with
``json_output``.

Ingested documents may be confidential, so :func:`redact_payloads` runs
ahead of every renderer and replaces any ``bytes``-like event value with a
size placeholder.  Log calls can pass a buffer by mistake without its
contents reaching the output.

Standard-library ``logging`` is routed through the same formatter so that
aiosqlite produces identically formatted output; its per-statement debug
chatter is capped at WARNING.
"""

from __future__ import annotations

import logging
import os
import sys
from typing import Any

import structlog

_NOISY_LIBRARIES = ("aiosqlite",)


def redact_payloads(_logger: Any, _method: str, event_dict: dict[str, Any]) -> dict[str, Any]:
    """Replace raw byte payloads in *event_dict* with ``<N bytes>``."""
    for key, value in event_dict.items():
        if isinstance(value, (bytes, bytearray, memoryview)):
            event_dict[key] = f"<{len(value)} bytes>"
    return event_dict


def _shared_processors() -> list[structlog.types.Processor]:
    # contextvars first, redaction before anything can render a value.
    return [
        structlog.contextvars.merge_contextvars,
        structlog.processors.add_log_level,
        redact_payloads,
        structlog.processors.StackInfoRenderer(),
        structlog.dev.set_exc_info,
        structlog.processors.TimeStamper(fmt="iso"),
    ]


def configure_logging(log_level: str = "INFO", json_output: bool = False) -> structlog.BoundLogger:
    """Configure structlog and the stdlib root logger for DocVault.

    Args:
        log_level: Level name (DEBUG, INFO, WARNING, ERROR, CRITICAL).
        json_output: Force JSON output; otherwise JSON is used only when
            ``APP_ENV=production``.

    Returns:
        A configured structlog BoundLogger.
    """
    level = log_level.upper()
    use_json = json_output or os.environ.get("APP_ENV", "development") == "production"
    renderer: structlog.types.Processor = (
        structlog.processors.JSONRenderer() if use_json else structlog.dev.ConsoleRenderer(colors=True)
    )
    shared = _shared_processors()

    structlog.configure(
        processors=[*shared, renderer],
        wrapper_class=structlog.make_filtering_bound_logger(logging.getLevelName(level)),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(),
        cache_logger_on_first_use=True,
    )

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(
        structlog.stdlib.ProcessorFormatter(
            processors=[
                structlog.stdlib.ProcessorFormatter.remove_processors_meta,
                *shared,
                renderer,
            ],
        )
    )
    root_logger = logging.getLogger()
    root_logger.handlers.clear()
    root_logger.addHandler(handler)
    root_logger.setLevel(level)

    for name in _NOISY_LIBRARIES:
        logging.getLogger(name).setLevel(max(logging.WARNING, root_logger.level))

    return structlog.get_logger()


def get_logger(name: str) -> structlog.BoundLogger:
    """Return a structlog logger bound to *name*, configuring defaults on first use."""
    if not structlog.is_configured():
        configure_logging()
    return structlog.get_logger(logger_name=name)
