"""Structured logging setup using structlog.

A single shared processor chain (context vars, level, timestamps, stack
info) feeds either a coloured console renderer for local work or a JSON
renderer for deployed instances.  ``APP_ENV=production`` selects JSON, as
does the ``json_output`` flag.

Standard-library ``logging`` output (uvicorn, httpx, chromadb, apscheduler)
is routed through the same renderer so every line in the process looks the
same.
"""

import logging
import os
import sys
from typing import TextIO

import structlog

# Third-party loggers that are chatty at INFO and add nothing to the
# event-level log stream.
_NOISY_LOGGERS = ("httpx", "httpcore", "chromadb", "apscheduler.executors.default")


def configure_logging(
    log_level: str = "INFO",
    json_output: bool = False,
    stream: TextIO | None = None,
) -> structlog.BoundLogger:
    """Configure structlog with environment-appropriate rendering.

    Args:
        log_level: Logging level string (DEBUG, INFO, WARNING, ERROR).
        json_output: Force JSON output regardless of ``APP_ENV``.
        stream: Destination for every log line; stdout when omitted.  The
            CLI passes stderr so its stdout carries only command output.

    Returns:
        A configured structlog BoundLogger.
    """
    stream = stream or sys.stdout
    use_json = json_output or os.environ.get("APP_ENV", "development") == "production"

    shared_processors: list[structlog.types.Processor] = [
        structlog.contextvars.merge_contextvars,
        structlog.processors.add_log_level,
        structlog.processors.StackInfoRenderer(),
        structlog.dev.set_exc_info,
        structlog.processors.TimeStamper(fmt="iso", utc=True),
    ]

    if use_json:
        renderer: structlog.types.Processor = structlog.processors.JSONRenderer()
    else:
        renderer = structlog.dev.ConsoleRenderer(colors=stream.isatty())

    structlog.configure(
        processors=[*shared_processors, renderer],
        wrapper_class=structlog.make_filtering_bound_logger(
            logging.getLevelName(log_level.upper())
        ),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(file=stream),
        cache_logger_on_first_use=True,
    )

    formatter = structlog.stdlib.ProcessorFormatter(
        processors=[
            structlog.stdlib.ProcessorFormatter.remove_processors_meta,
            *shared_processors,
            renderer,
        ],
    )

    handler = logging.StreamHandler(stream)
    handler.setFormatter(formatter)

    root_logger = logging.getLogger()
    root_logger.handlers.clear()
    root_logger.addHandler(handler)
    root_logger.setLevel(log_level.upper())

    for name in _NOISY_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)

    return structlog.get_logger()


def get_logger(name: str) -> structlog.BoundLogger:
    """Get a named structlog logger, configuring defaults on first use."""
    if not structlog.is_configured():
        configure_logging()

    return structlog.get_logger(logger_name=name)


def bind_event_context(event_id: str, **extra: str) -> None:
    """Bind ``event_id`` (and any extra keys) to every log line in this task.

    Uses structlog contextvars, so the binding is scoped to the current
    asyncio task and does not leak across concurrent requests.
    """
    structlog.contextvars.bind_contextvars(event_id=event_id, **extra)


def clear_event_context() -> None:
    structlog.contextvars.clear_contextvars()
