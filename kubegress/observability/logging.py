"""Structured logging configuration using structlog.

Every record is one JSON line on stderr.  Records emitted through the
standard library (uvicorn, httpx, kubernetes-asyncio) are routed to the same
stream so a log pipeline only has to parse one format.
"""

from __future__ import annotations

import logging
import sys

import structlog

# third-party loggers that are too chatty below WARNING
_QUIET_LOGGERS = ("httpx", "httpcore", "kubernetes_asyncio", "uvicorn.error")


def setup_logging(level: str = "info", controller_name: str = "") -> None:
    """Configure structlog for JSON output to stderr.

    ``controller_name`` is bound into every record, so logs of several
    controller instances sharing a cluster can be told apart.
    """
    log_level = getattr(logging, level.upper(), logging.INFO)

    logging.basicConfig(level=log_level, stream=sys.stderr, format="%(message)s", force=True)
    for name in _QUIET_LOGGERS:
        logging.getLogger(name).setLevel(max(log_level, logging.WARNING))

    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.processors.add_log_level,
            structlog.processors.StackInfoRenderer(),
            structlog.dev.set_exc_info,
            structlog.processors.format_exc_info,
            structlog.processors.TimeStamper(fmt="iso", utc=True, key="ts"),
            structlog.processors.JSONRenderer(),
        ],
        wrapper_class=structlog.make_filtering_bound_logger(log_level),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(file=sys.stderr),
        cache_logger_on_first_use=True,
    )

    structlog.contextvars.clear_contextvars()
    if controller_name:
        structlog.contextvars.bind_contextvars(controller=controller_name)


def get_logger(component: str) -> structlog.stdlib.BoundLogger:
    """Get a logger bound with a component name."""
    return structlog.get_logger(component=component)  # type: ignore[return-value]
