"""
Structured logging configuration using structlog.

Development gets a colored console renderer, production gets one JSON
object per line. Request-scoped values (request_id, index) are carried in
contextvars and merged into every event.

Usage:
    from core.logging import configure_logging, get_logger

    configure_logging(json_logs=False)

    logger = get_logger(__name__)
    logger.info("Search compiled", index="products", ctes=4)
"""

import contextvars
import logging
import sys
from typing import Any, Callable, Optional, TypeVar

import structlog
from structlog.types import EventDict, Processor

T = TypeVar("T")

# Compiled statements can be long; keep log lines readable
MAX_SQL_LOG_CHARS = 4000


def _truncate_sql(_: Any, __: str, event_dict: EventDict) -> EventDict:
    statement = event_dict.get("sql")
    if isinstance(statement, str) and len(statement) > MAX_SQL_LOG_CHARS:
        event_dict["sql"] = statement[:MAX_SQL_LOG_CHARS] + "..."
        event_dict["sql_truncated"] = True
    return event_dict


def configure_logging(
    json_logs: bool = False,
    log_level: str = "INFO",
    include_timestamp: bool = True,
) -> None:
    """
    Configure structlog and the stdlib root logger.

    Args:
        json_logs: JSON lines (production) instead of colored console output.
        log_level: Minimum log level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        include_timestamp: Whether to add an ISO timestamp to every event
    """
    processors: list[Processor] = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_log_level,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.UnicodeDecoder(),
        _truncate_sql,
    ]

    if include_timestamp:
        processors.insert(0, structlog.processors.TimeStamper(fmt="iso"))

    if json_logs:
        processors.append(structlog.processors.format_exc_info)
        processors.append(structlog.processors.JSONRenderer())
    else:
        processors.append(structlog.dev.ConsoleRenderer(
            colors=True,
            exception_formatter=structlog.dev.plain_traceback,
        ))

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )

    logging.basicConfig(
        format="%(message)s",
        stream=sys.stdout,
        level=getattr(logging, log_level.upper()),
        force=True,
    )

    # Reduce noise from third-party libraries
    logging.getLogger("psycopg").setLevel(logging.WARNING)
    logging.getLogger("psycopg.pool").setLevel(logging.WARNING)
    logging.getLogger("uvicorn.access").setLevel(logging.WARNING)


def get_logger(name: Optional[str] = None) -> structlog.stdlib.BoundLogger:
    """Get a structured logger (typically get_logger(__name__))."""
    return structlog.get_logger(name)


def bind_context(**kwargs: Any) -> None:
    """Bind values to every subsequent log event in the current context."""
    structlog.contextvars.bind_contextvars(**kwargs)


def clear_context() -> None:
    """Clear all bound context variables at the end of a request."""
    structlog.contextvars.clear_contextvars()


def in_current_context(fn: Callable[..., T]) -> Callable[..., T]:
    """
    Wrap fn so it runs inside a copy of the caller's context.

    Worker threads start with an empty context; submitting the wrapped
    callable keeps request_id and friends on logs emitted from the pool.
    """
    ctx = contextvars.copy_context()

    def run(*args: Any, **kwargs: Any) -> T:
        return ctx.run(fn, *args, **kwargs)

    return run
