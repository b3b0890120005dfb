"""
Structured logging setup.

Call ``setup_logging`` once at process start. Library modules only do
``logger = structlog.get_logger(__name__)`` and log snake_case events with
keyword context; they never configure logging themselves.

Example:
    >>> setup_logging(LogLevel.DEBUG, LogFormat.TEXT)
    >>> structlog.get_logger("demo").info("adapter_connected", exchange_id="okx")
"""

import logging
from typing import List, Union

import structlog

from exchange_gateway.config.models import LogFormat, LogLevel


def _renderer(fmt: LogFormat) -> structlog.types.Processor:
    if fmt == LogFormat.TEXT:
        return structlog.dev.ConsoleRenderer(colors=False)
    return structlog.processors.JSONRenderer()


def setup_logging(
    level: Union[LogLevel, str] = LogLevel.INFO,
    fmt: Union[LogFormat, str] = LogFormat.JSON,
) -> None:
    """
    Configure structlog on top of the standard library logger.

    Args:
        level: Minimum level (e.g. "INFO").
        fmt: "json" for machine-readable lines, "text" for console output.
    """
    level = LogLevel(level.upper()) if isinstance(level, str) else level
    fmt = LogFormat(fmt) if isinstance(fmt, str) else fmt

    processors: List[structlog.types.Processor] = [
        structlog.stdlib.filter_by_level,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        structlog.processors.UnicodeDecoder(),
        _renderer(fmt),
    ]

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )

    logging.basicConfig(
        format="%(message)s",
        level=getattr(logging, level.value),
        force=True,
    )

    # Reduce noise from uvicorn access logs
    logging.getLogger("uvicorn.access").setLevel(logging.WARNING)
    # websockets logs every frame at DEBUG
    logging.getLogger("websockets").setLevel(max(logging.INFO, getattr(logging, level.value)))
