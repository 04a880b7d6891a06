"""Structured logging for the access layer.

Every event is a structlog key/value record. Two things are specific to a
database layer:

- ``sql`` fields are shortened, since a bulk script can be arbitrarily long,
  and characters that cannot be encoded are escaped.
- ``operation_context`` binds the facade operation and store path into
  contextvars, so events logged by the store, executor and transaction
  controller while serving a call carry them without passing them around.
"""

from __future__ import annotations

import logging
import sys
from contextlib import contextmanager
from typing import Any, Iterator

import structlog
from structlog.types import EventDict, Processor, WrappedLogger

SQL_PREVIEW_CHARS = 200


def shorten_sql(_: WrappedLogger, __: str, event_dict: EventDict) -> EventDict:
    """Processor that truncates the ``sql`` field of an event."""
    sql = event_dict.get("sql")
    if isinstance(sql, str):
        # lone surrogates cannot be written to a UTF-8 stream
        sql = " ".join(sql.split()).encode("utf-8", "backslashreplace").decode("utf-8")
        if len(sql) > SQL_PREVIEW_CHARS:
            sql = f"{sql[:SQL_PREVIEW_CHARS]}... ({len(sql)} chars)"
        event_dict["sql"] = sql
    return event_dict


def setup_logging(
    level: str = "INFO",
    log_format: str = "json",
) -> None:
    """
    Set up structured logging with structlog.

    Args:
        level: Log level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        log_format: 'json' for one object per line, 'console' for humans
    """
    log_level = getattr(logging, level.upper())
    logging.basicConfig(format="%(message)s", stream=sys.stdout, level=log_level)

    processors: list[Processor] = [
        structlog.contextvars.merge_contextvars,
        structlog.processors.add_log_level,
        structlog.processors.TimeStamper(fmt="iso"),
        shorten_sql,
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
    ]
    if log_format == "json":
        processors.append(structlog.processors.JSONRenderer())
    else:
        processors.append(structlog.dev.ConsoleRenderer(colors=sys.stdout.isatty()))

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.make_filtering_bound_logger(log_level),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(),
        cache_logger_on_first_use=True,
    )


@contextmanager
def operation_context(operation: str, db_path: str) -> Iterator[None]:
    """Bind ``operation`` and ``db_path`` to every event logged inside."""
    with structlog.contextvars.bound_contextvars(operation=operation, db_path=db_path):
        yield


def get_logger(name: str | None = None, **initial_context: Any) -> structlog.BoundLogger:
    """Get a logger, optionally bound to ``initial_context``."""
    logger = structlog.get_logger(name)
    if initial_context:
        logger = logger.bind(**initial_context)
    return logger
