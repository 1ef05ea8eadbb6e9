"""
structlog setup for storeledger.

Development gets the colored console renderer, every other environment gets
one JSON object per line. Reports bind their window and revenue model into
the context so that every event logged while a report is built carries them.
"""

import logging
import sys
from collections.abc import Iterator
from contextlib import contextmanager
from typing import Any

import structlog
from structlog.types import EventDict, Processor

from storeledger.config.settings import get_settings


def add_app_context(logger: Any, method_name: str, event_dict: EventDict) -> EventDict:
    settings = get_settings()
    event_dict.setdefault("app", settings.app_name)
    event_dict.setdefault("version", settings.app_version)
    return event_dict


def configure_logging(json_logs: bool | None = None, level: str | None = None) -> None:
    """
    Configure structlog and the stdlib root logger.

    Args:
        json_logs: Force JSON (True) or console (False) output. Defaults to
            JSON outside the development environment.
        level: Log level name. Defaults to the configured log_level.
    """
    settings = get_settings()
    if json_logs is None:
        json_logs = settings.environment != "development"
    level = level or settings.log_level

    processors: list[Processor] = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_log_level,
        structlog.stdlib.add_logger_name,
        structlog.processors.TimeStamper(fmt="iso", utc=True),
        structlog.processors.StackInfoRenderer(),
        add_app_context,
    ]
    if json_logs:
        processors += [structlog.processors.format_exc_info, structlog.processors.JSONRenderer()]
    else:
        processors.append(structlog.dev.ConsoleRenderer(colors=True))

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )

    logging.basicConfig(format="%(message)s", stream=sys.stdout, level=getattr(logging, level))
    logging.getLogger("aiosqlite").setLevel(logging.WARNING)


@contextmanager
def report_context(**values: Any) -> Iterator[None]:
    """Bind report-scoped values (window, recognition, ...) to every log event inside."""
    with structlog.contextvars.bound_contextvars(**values):
        yield


def get_logger(name: str | None = None) -> structlog.stdlib.BoundLogger:
    return structlog.get_logger(name)
