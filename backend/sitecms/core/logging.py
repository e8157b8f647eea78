"""Structured logging configuration using structlog.

Every event is a snake_case name plus keyword context:

    logger.info("translation_created", translation_id=str(translation.id))

Request-scoped values (request_id, method, path) are bound through
contextvars by the request logging middleware and merged into each event.
"""

import logging
import sys
from typing import Any, Literal

import structlog
from structlog.types import EventDict, Processor, WrappedLogger

from sitecms.config import settings

LogFormat = Literal["json", "console"]

# Third-party loggers and the level they are capped at
_QUIET_LOGGERS = {
    "uvicorn.access": logging.WARNING,
    "asyncio": logging.WARNING,
}


def _add_service(_: WrappedLogger, __: str, event_dict: EventDict) -> EventDict:
    """Tag events with the emitting service, for aggregated JSON logs."""
    event_dict.setdefault("service", settings.app_name)
    event_dict.setdefault("environment", settings.environment)
    return event_dict


def _processors(log_format: LogFormat) -> list[Processor]:
    shared: list[Processor] = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_log_level,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.TimeStamper(fmt="iso", utc=True),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.UnicodeDecoder(),
    ]
    if log_format == "json":
        return [
            *shared,
            _add_service,
            structlog.processors.dict_tracebacks,
            structlog.processors.JSONRenderer(),
        ]
    return [*shared, structlog.dev.ConsoleRenderer(colors=sys.stdout.isatty())]


def setup_logging(log_format: LogFormat | None = None, log_level: str | None = None) -> None:
    """Configure structlog and route stdlib logging through stdout.

    Defaults come from settings; command line tools may override them.
    """
    log_format = log_format or settings.log_format
    level = getattr(logging, (log_level or settings.log_level).upper())

    structlog.configure(
        processors=_processors(log_format),
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )

    logging.basicConfig(format="%(message)s", stream=sys.stdout, level=level, force=True)

    for name, cap in _QUIET_LOGGERS.items():
        logging.getLogger(name).setLevel(max(cap, level))
    logging.getLogger("sqlalchemy.engine").setLevel(
        logging.INFO if settings.database_echo else logging.WARNING
    )


def get_logger(name: str | None = None) -> structlog.stdlib.BoundLogger:
    """Get a structured logger, usually `get_logger(__name__)`."""
    return structlog.get_logger(name)


def bind_context(**kwargs: Any) -> None:
    """Bind values to every event logged from the current context."""
    structlog.contextvars.bind_contextvars(**kwargs)


def clear_context() -> None:
    structlog.contextvars.clear_contextvars()
