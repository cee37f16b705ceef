"""
Structured logging configuration using structlog.
JSON lines in production, colored console output everywhere else.

Reconcile log events carry ``kind``, ``namespace`` and ``name`` bound by the
reconciler shell, plus ``cluster_uuid`` once a remote cluster is known.
"""
import logging
import sys
from datetime import datetime
from enum import Enum
from typing import Any, Optional

import structlog
from structlog.types import EventDict, Processor

from dbaas_operator.config.settings import Settings, settings

# Libraries that log every request at INFO
NOISY_LOGGERS = ("uvicorn.access", "kubernetes_asyncio", "httpx", "httpcore")


def app_context_processor(config: Settings) -> Processor:
    """Build a processor stamping every event with app, version and environment."""

    def add_app_context(logger: Any, method_name: str, event_dict: EventDict) -> EventDict:
        event_dict.setdefault("app", config.app_name)
        event_dict.setdefault("version", config.app_version)
        event_dict.setdefault("environment", config.environment)
        return event_dict

    return add_app_context


def normalize_values(logger: Any, method_name: str, event_dict: EventDict) -> EventDict:
    """
    Render enums, record keys and timestamps as plain strings.

    ResourceKey is a tuple and would otherwise be logged as a JSON list.
    """
    for field, value in event_dict.items():
        if isinstance(value, Enum):
            event_dict[field] = value.value
        elif isinstance(value, datetime):
            event_dict[field] = value.isoformat()
        elif isinstance(value, tuple) and hasattr(value, "_fields"):
            event_dict[field] = str(value)
    return event_dict


def configure_logging(config: Optional[Settings] = None) -> None:
    """Configure structured logging for the operator."""
    config = config or settings

    shared_processors: list[Processor] = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        app_context_processor(config),
        normalize_values,
    ]

    if config.is_production:
        renderer: Processor = structlog.processors.JSONRenderer()
    else:
        renderer = structlog.dev.ConsoleRenderer(colors=sys.stdout.isatty())

    structlog.configure(
        processors=shared_processors + [renderer],
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )

    logging.basicConfig(
        format="%(message)s",
        stream=sys.stdout,
        level=getattr(logging, config.log_level),
    )

    for name in NOISY_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)


def get_logger(name: str) -> structlog.stdlib.BoundLogger:
    """
    Get a configured structlog logger.

    Args:
        name: Logger name (typically __name__ of the module)
    """
    return structlog.get_logger(name)
