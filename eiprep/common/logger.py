"""
Engine Logger

Every module logs through a child of ``app_logger`` (the ``eiprep`` logger),
which is configured once from the LOG_LEVEL, LOG_JSON and LOG_FILE settings.

A running engine wraps its logger in a LoggerAdapter so that each record
carries the user, test and session it belongs to. The context travels in
``record.data``: JsonFormatter emits it as top-level fields, TextFormatter
appends it as ``key=value`` pairs.
"""

import asyncio
import contextlib
import datetime
import functools
import json
import logging
import os
import sys
from time import perf_counter
from typing import Any, Callable, Dict, Iterator, Optional, TypeVar, Union

LOGGER_NAME = "eiprep"
TEXT_FORMAT = "%(asctime)s | %(levelname)-8s | %(name)-36s | %(message)s"
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"

F = TypeVar('F', bound=Callable[..., Any])

__all__ = [
    'JsonFormatter',
    'TextFormatter',
    'LoggerAdapter',
    'configure_logger',
    'get_app_logger',
    'app_logger',
    'log_execution_time',
]


def _context(record: logging.LogRecord) -> Dict[str, Any]:
    data = getattr(record, "data", None)
    return data if isinstance(data, dict) else {}


class JsonFormatter(logging.Formatter):
    """One JSON object per record, for log aggregation."""

    def __init__(self, indent: Optional[int] = None):
        super().__init__()
        self.indent = indent

    def format(self, record: logging.LogRecord) -> str:
        payload = {
            "timestamp": datetime.datetime.fromtimestamp(record.created, datetime.timezone.utc).isoformat(),
            "level": record.levelname,
            "name": record.name,
            "message": record.getMessage(),
            "location": f"{record.module}:{record.lineno}",
        }
        payload.update(_context(record))
        if record.exc_info:
            payload["exception"] = {
                "type": record.exc_info[0].__name__,
                "traceback": self.formatException(record.exc_info),
            }
        return json.dumps(payload, indent=self.indent, default=str)


class TextFormatter(logging.Formatter):
    """Human readable lines with the adapter context appended."""

    def __init__(self, fmt: str = TEXT_FORMAT, datefmt: str = DATE_FORMAT):
        super().__init__(fmt, datefmt)

    def formatMessage(self, record: logging.LogRecord) -> str:
        line = super().formatMessage(record)
        context = _context(record)
        if context:
            line += " [" + " ".join(f"{key}={value}" for key, value in context.items()) + "]"
        return line


def configure_logger(
    name: str = LOGGER_NAME,
    level: Union[str, int] = logging.INFO,
    use_json: bool = False,
    log_file: Optional[str] = None,
    stream=sys.stdout
) -> logging.Logger:
    """
    (Re)configure a logger, replacing any handlers it already has.

    Args:
        name: Logger name
        level: Level name or number
        use_json: Emit JSON instead of text
        log_file: Also write to this file; its directory is created if needed
        stream: Console stream, or None for no console output

    Returns:
        The configured logger
    """
    logger = logging.getLogger(name)
    logger.setLevel(logging.getLevelName(level.upper()) if isinstance(level, str) else level)
    for handler in list(logger.handlers):
        logger.removeHandler(handler)

    formatter = JsonFormatter() if use_json else TextFormatter()
    handlers = []
    if stream is not None:
        handlers.append(logging.StreamHandler(stream))
    if log_file:
        try:
            os.makedirs(os.path.dirname(log_file) or ".", exist_ok=True)
            handlers.append(logging.FileHandler(log_file))
        except OSError as e:
            logging.getLogger("fallback").warning(f"Could not open log file {log_file}: {e}")

    for handler in handlers:
        handler.setFormatter(formatter)
        logger.addHandler(handler)
    return logger


def get_app_logger() -> logging.Logger:
    """The ``eiprep`` logger, configured from settings on first use."""
    logger = logging.getLogger(LOGGER_NAME)
    if logger.handlers:
        return logger

    from eiprep.config import get_settings
    settings = get_settings()
    return configure_logger(
        level=settings.LOG_LEVEL,
        use_json=settings.LOG_JSON,
        log_file=settings.LOG_FILE,
    )


app_logger = get_app_logger()


class LoggerAdapter(logging.LoggerAdapter):
    """
    Adds a fixed context to every record, under ``extra["data"]``.

    Fields passed at the call site win over the adapter's own.
    """

    def __init__(self, logger: logging.Logger, context: Optional[Dict[str, Any]] = None):
        super().__init__(logger, dict(context or {}))

    def process(self, msg: str, kwargs: Dict[str, Any]) -> tuple:
        extra = dict(kwargs.get("extra") or {})
        data = dict(self.extra)
        data.update(extra.get("data") or {})
        extra["data"] = data
        return msg, dict(kwargs, extra=extra)

    def with_context(self, **context) -> 'LoggerAdapter':
        """A new adapter whose context is this one's plus ``context``."""
        return LoggerAdapter(self.logger, dict(self.extra, **context))


@contextlib.contextmanager
def _timed(logger: logging.Logger, name: str) -> Iterator[None]:
    started = perf_counter()
    try:
        yield
    except Exception as e:
        logger.error(f"{name} failed after {perf_counter() - started:.3f}s: {e}")
        raise
    logger.debug(f"{name} took {perf_counter() - started:.3f}s")


def log_execution_time(logger: Optional[logging.Logger] = None) -> Callable[[F], F]:
    """
    Log how long the decorated function takes, at DEBUG.

    Failures are logged at ERROR and re-raised. Coroutine functions are timed
    until they finish, not until they return a coroutine.
    """
    def decorator(func: F) -> F:
        if asyncio.iscoroutinefunction(func):
            @functools.wraps(func)
            async def async_wrapper(*args: Any, **kwargs: Any) -> Any:
                with _timed(logger or app_logger, func.__qualname__):
                    return await func(*args, **kwargs)
            return async_wrapper

        @functools.wraps(func)
        def wrapper(*args: Any, **kwargs: Any) -> Any:
            with _timed(logger or app_logger, func.__qualname__):
                return func(*args, **kwargs)
        return wrapper
    return decorator
