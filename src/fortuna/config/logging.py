"""Structured logging setup for the projection engine.

Service classes bind ``component=...`` on their module logger. While a
workspace is being synced, ``bind_workspace`` adds ``workspace_id`` to
every line logged underneath it, including the generator's and the stores'.
"""

import logging
import sys
from collections.abc import Iterator
from contextlib import contextmanager
from typing import Literal

import structlog

from fortuna.config.settings import Settings, get_settings

LogLevel = Literal["DEBUG", "INFO", "WARNING", "ERROR"]
LogFormat = Literal["json", "console"]


def _renderer(log_format: LogFormat) -> structlog.types.Processor:
    if log_format == "json":
        return structlog.processors.JSONRenderer()
    return structlog.dev.ConsoleRenderer(
        colors=sys.stdout.isatty(),
        exception_formatter=structlog.dev.plain_traceback,
    )


def configure_logging(
    level: LogLevel | None = None,
    format: LogFormat | None = None,
    settings: Settings | None = None,
) -> None:
    """Route structlog through the standard library at the configured level.

    Args:
        level: Overrides ``LOG_LEVEL``.
        format: Overrides ``LOG_FORMAT``.
        settings: Settings to read defaults from; the cached settings otherwise.
    """
    settings = settings or get_settings()
    log_level = level or settings.log_level
    log_format = format or settings.log_format

    logging.basicConfig(format="%(message)s", stream=sys.stdout, level=log_level)
    logging.getLogger("fortuna").setLevel(log_level)

    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.stdlib.filter_by_level,
            structlog.stdlib.add_logger_name,
            structlog.stdlib.add_log_level,
            structlog.processors.TimeStamper(fmt="iso", utc=True),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            _renderer(log_format),
        ],
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )


@contextmanager
def bind_workspace(workspace_id: int) -> Iterator[None]:
    """Tag log lines emitted inside the block with ``workspace_id``."""
    with structlog.contextvars.bound_contextvars(workspace_id=workspace_id):
        yield


def get_logger(name: str) -> structlog.stdlib.BoundLogger:
    return structlog.get_logger(name)
