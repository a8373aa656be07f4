"""Structured logging for the server, leader and follower processes.

Every process calls ``configure_logging`` once at startup. Components log
through ``structlog.get_logger()`` and bind ``component=``; connection
handlers bind per-connection keys with ``LogContext`` so every line logged
while serving that connection carries them.
"""

import logging
import sys
import time
from contextlib import contextmanager
from typing import TYPE_CHECKING, Optional

import structlog

if TYPE_CHECKING:
    from ..config import MirrorSettings

# Chatty third-party loggers, kept at WARNING unless running at DEBUG
_LIBRARY_LOGGERS = ("websockets", "asyncio")


def configure_logging(
    level: str = "INFO",
    json_format: bool = False,
    include_timestamp: bool = True,
) -> None:
    """Configure structlog on top of stdlib logging.

    Args:
        level: Log level name (DEBUG, INFO, WARNING, ERROR)
        json_format: Render one JSON object per line instead of console output
        include_timestamp: Add an ISO timestamp to every line

    Raises:
        AttributeError: If ``level`` is not a stdlib level name.
    """
    numeric_level = getattr(logging, level.upper())
    logging.basicConfig(format="%(message)s", stream=sys.stdout, level=numeric_level)
    logging.getLogger().setLevel(numeric_level)

    library_level = numeric_level if numeric_level <= logging.DEBUG else logging.WARNING
    for name in _LIBRARY_LOGGERS:
        logging.getLogger(name).setLevel(library_level)

    processors = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.filter_by_level,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.stdlib.PositionalArgumentsFormatter(),
    ]
    if include_timestamp:
        processors.append(structlog.processors.TimeStamper(fmt="iso"))
    processors += [
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        structlog.processors.UnicodeDecoder(),
        structlog.processors.JSONRenderer() if json_format else structlog.dev.ConsoleRenderer(),
    ]

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )


def configure_from_settings(settings: "MirrorSettings") -> None:
    """Configure logging from ``log_level`` / ``log_json`` settings."""
    configure_logging(level=settings.log_level, json_format=settings.log_json)


def get_logger(name: Optional[str] = None, **context) -> structlog.BoundLogger:
    """Get a logger, optionally with context already bound."""
    logger = structlog.get_logger(name)
    if context:
        logger = logger.bind(**context)
    return logger


class LogContext:
    """Bind context variables for the duration of a block.

    Usage:
        with LogContext(channel_id=channel.channel_id):
            await serve(channel)
            # every log line in here carries channel_id
    """

    def __init__(self, **context):
        self.context = context

    def __enter__(self) -> "LogContext":
        structlog.contextvars.bind_contextvars(**self.context)
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        structlog.contextvars.unbind_contextvars(*self.context)


@contextmanager
def log_operation(
    operation: str,
    logger: Optional[structlog.BoundLogger] = None,
    **context,
):
    """Log the start and outcome of an operation, with its duration.

    Yields:
        Dict the caller can add result fields to; ``success``, ``error`` and
        ``duration_ms`` are filled in on exit.

    Example:
        with log_operation("mirror", recording=path) as op:
            op["sent"] = await leader.mirror(source)
    """
    log = (logger or get_logger()).bind(operation=operation, **context)

    log.info(f"{operation} started")
    result = {"success": False, "error": None}
    start = time.time()

    try:
        yield result
        result["success"] = True
        result["duration_ms"] = int((time.time() - start) * 1000)
        log.info(f"{operation} completed", **result)
    except Exception as e:
        result["error"] = str(e)
        result["duration_ms"] = int((time.time() - start) * 1000)
        log.error(f"{operation} failed", **result)
        raise
