"""Logging setup for the search engine, its service and the index builder.

Every process calls ``configure_logging`` once at startup; modules then log
through ``structlog.get_logger(<component>)`` with key-value context. The
service name, and anything else passed at startup, is bound through
contextvars so it rides along on every line, including lines emitted from
background refresh and model-loading tasks.
"""

import logging
import sys
from typing import Any

import structlog
from structlog.stdlib import LoggerFactory, add_logger_name

_performance_logger = structlog.get_logger("performance")


def configure_logging(
    service_name: str,
    log_level: str = "INFO",
    log_format: str = "json",
    **kwargs: Any
) -> None:
    """Route structlog through stdlib logging on stdout.

    ``log_format`` is ``json`` for the deployed service and anything else
    (``console``) for local runs and the index builder. Unknown levels fall
    back to ``INFO``.
    """
    logging.basicConfig(
        format="%(message)s",
        stream=sys.stdout,
        level=getattr(logging, log_level.upper(), logging.INFO),
    )

    processors = [
        structlog.contextvars.merge_contextvars,
        structlog.processors.add_log_level,
        structlog.processors.TimeStamper(fmt="iso"),
        add_logger_name,
        _renderer(log_format),
    ]

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.stdlib.BoundLogger,
        logger_factory=LoggerFactory(),
        cache_logger_on_first_use=True,
    )

    structlog.contextvars.clear_contextvars()
    structlog.contextvars.bind_contextvars(service=service_name, **kwargs)


def _renderer(log_format: str):
    if log_format == "json":
        return structlog.processors.JSONRenderer()
    return structlog.dev.ConsoleRenderer(colors=sys.stdout.isatty())


def log_performance(operation: str, duration_ms: float, **kwargs: Any) -> None:
    """Record how long one search-side operation took.

    ``operation`` is a stable name such as ``search``; ``kwargs`` carry
    dimensions like the search mode or result count.
    """
    _performance_logger.info(
        "Operation completed",
        operation=operation,
        duration_ms=round(duration_ms, 2),
        **kwargs
    )
