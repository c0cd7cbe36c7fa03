"""
Structured logging configuration.

Every module logs through structlog so that events carry
key/value context (ledger_id, organization_id, request_id)
instead of free-form strings.
"""

import logging
import sys

import structlog

from tenant_ledger.config import get_settings


def configure_logging(level: str | None = None, format: str | None = None) -> None:
    """
    Configure structlog on top of the standard library logger.

    Defaults come from settings (LOG_LEVEL, LOG_FORMAT).
    """
    settings = get_settings()
    log_level = (level or settings.LOG_LEVEL).upper()
    log_format = format or settings.LOG_FORMAT

    logging.basicConfig(
        format="%(message)s",
        stream=sys.stdout,
        level=getattr(logging, log_level, logging.INFO),
    )

    if log_format == "json":
        renderer = structlog.processors.JSONRenderer()
    else:
        renderer = structlog.dev.ConsoleRenderer(colors=False)

    shared_processors: list[structlog.types.Processor] = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.filter_by_level,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
    ]

    structlog.configure(
        processors=shared_processors + [renderer],
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )
