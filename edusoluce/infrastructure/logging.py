"""
Centralized logging configuration for the EduSoluce assessment engine.

Structured JSON logs carry the respondent and assessment context of the
session being scored so that a submission can be traced area by area.
"""

from __future__ import annotations

import json
import logging
import logging.config
import os
import time
from collections.abc import Callable
from datetime import datetime, timezone
from functools import wraps
from pathlib import Path
from types import TracebackType
from typing import Any, ParamSpec, TypeVar, cast

P = ParamSpec("P")
R = TypeVar("R")

ROOT_LOGGER_NAME = "edusoluce"

# Record attributes copied into structured output when a filter or `extra` set them
CONTEXT_FIELDS = ("user_id", "session_id", "assessment_id", "area_id", "operation")


class StructuredFormatter(logging.Formatter):
    """Formatter that renders each record as a single JSON object."""

    def format(self, record: logging.LogRecord) -> str:
        entry: dict[str, Any] = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "module": record.module,
            "function": record.funcName,
            "line": record.lineno,
        }

        for field in CONTEXT_FIELDS:
            value = getattr(record, field, None)
            if value is not None:
                entry[field] = value

        if record.exc_info:
            exc_type, exc_value, exc_tb = record.exc_info
            if exc_type is not None and exc_value is not None:
                entry["exception"] = {
                    "type": exc_type.__name__,
                    "message": str(exc_value),
                    "traceback": self.formatException((exc_type, exc_value, exc_tb)),
                }

        return json.dumps(entry, ensure_ascii=False, default=str)


class ContextFilter(logging.Filter):
    """Attach the current assessment context to every record."""

    def __init__(self):
        super().__init__()
        self.context: dict[str, Any] = {}

    def set_context(self, **kwargs: Any) -> None:
        self.context.update(kwargs)

    def filter(self, record: logging.LogRecord) -> bool:
        for key, value in self.context.items():
            if not hasattr(record, key):
                setattr(record, key, value)
        return True


context_filter = ContextFilter()


def setup_logging(
    level: str = "INFO",
    log_file: str | None = None,
    structured: bool = True,
    enable_console: bool = True,
    max_bytes: int = 10 * 1024 * 1024,
    backup_count: int = 5,
) -> None:
    """
    Configure the `edusoluce` logger tree via dictConfig.

    Args:
        level: Minimum log level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        log_file: Optional path for a rotating JSON log file
        structured: Use JSON formatting on the console handler
        enable_console: Emit records to stdout
        max_bytes: Rotation threshold for the file handler
        backup_count: Number of rotated files to keep

    Example:
        >>> setup_logging(level="DEBUG", log_file="./logs/edusoluce.log")
    """
    if log_file:
        Path(log_file).parent.mkdir(parents=True, exist_ok=True)

    config: dict[str, Any] = {
        "version": 1,
        "disable_existing_loggers": False,
        "formatters": {
            "structured": {"()": StructuredFormatter},
            "standard": {
                "format": "%(asctime)s [%(levelname)s] %(name)s: %(message)s",
                "datefmt": "%Y-%m-%d %H:%M:%S",
            },
        },
        "filters": {"context": {"()": lambda: context_filter}},
        "handlers": {},
        "loggers": {
            ROOT_LOGGER_NAME: {"level": level, "handlers": [], "propagate": False},
            "sqlalchemy.engine": {"level": "WARNING", "handlers": [], "propagate": False},
            "uvicorn.access": {"level": "WARNING", "handlers": [], "propagate": False},
        },
        "root": {"level": level, "handlers": []},
    }

    handlers = cast(dict[str, dict[str, Any]], config["handlers"])
    loggers = cast(dict[str, dict[str, Any]], config["loggers"])
    names: list[str] = []

    if enable_console:
        handlers["console"] = {
            "class": "logging.StreamHandler",
            "level": level,
            "formatter": "structured" if structured else "standard",
            "filters": ["context"],
            "stream": "ext://sys.stdout",
        }
        names.append("console")

    if log_file:
        handlers["file"] = {
            "class": "logging.handlers.RotatingFileHandler",
            "level": level,
            "formatter": "structured",
            "filters": ["context"],
            "filename": log_file,
            "maxBytes": max_bytes,
            "backupCount": backup_count,
            "encoding": "utf-8",
        }
        names.append("file")

    if not names:
        handlers["null"] = {"class": "logging.NullHandler"}
        names.append("null")

    for logger_config in loggers.values():
        logger_config["handlers"] = list(names)
    cast(dict[str, Any], config["root"])["handlers"] = list(names)

    logging.config.dictConfig(config)


def get_logger(name: str) -> logging.Logger:
    """
    Return a logger inside the `edusoluce` namespace.

    Example:
        >>> get_logger("scoring").name
        'edusoluce.scoring'
    """
    if name == ROOT_LOGGER_NAME or name.startswith(f"{ROOT_LOGGER_NAME}."):
        return logging.getLogger(name)
    return logging.getLogger(f"{ROOT_LOGGER_NAME}.{name}")


class LogContext:
    """Context manager for temporary logging context."""

    def __init__(self, **kwargs: Any):
        self.context: dict[str, Any] = kwargs
        self.previous_context: dict[str, Any] = {}

    def __enter__(self) -> LogContext:
        self.previous_context = context_filter.context.copy()
        context_filter.set_context(**self.context)
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: TracebackType | None,
    ) -> None:
        context_filter.context = self.previous_context


def log_operation(
    operation: str, logger: logging.Logger | None = None
) -> Callable[[Callable[P, R]], Callable[P, R]]:
    """
    Decorator logging start, success and failure of an application operation.

    Example:
        >>> @log_operation("start_session")
        ... def start_session(assessment_id: str):
        ...     pass
    """

    def decorator(func: Callable[P, R]) -> Callable[P, R]:
        @wraps(func)
        def wrapper(*args: P.args, **kwargs: P.kwargs) -> R:
            func_logger = logger or get_logger(func.__module__)

            with LogContext(operation=operation):
                func_logger.debug("Starting %s", operation)
                try:
                    result = func(*args, **kwargs)
                    func_logger.debug("Completed %s", operation)
                    return result
                except Exception as e:
                    func_logger.error("Failed %s: %s", operation, e, exc_info=True)
                    raise

        return wrapper

    return decorator


def log_database_operation(operation: str) -> Callable[[Callable[P, R]], Callable[P, R]]:
    """
    Decorator for repository methods; logs duration of each database call.

    Example:
        >>> @log_database_operation("result.upsert")
        ... def upsert(record):
        ...     pass
    """

    def decorator(func: Callable[P, R]) -> Callable[P, R]:
        @wraps(func)
        def wrapper(*args: P.args, **kwargs: P.kwargs) -> R:
            logger = get_logger("database")

            with LogContext(operation=f"db_{operation}"):
                started = time.perf_counter()
                try:
                    result = func(*args, **kwargs)
                    logger.debug(
                        "Database operation %s completed in %.3fs",
                        operation,
                        time.perf_counter() - started,
                    )
                    return result
                except Exception as e:
                    logger.error(
                        "Database operation %s failed after %.3fs: %s",
                        operation,
                        time.perf_counter() - started,
                        e,
                        exc_info=True,
                    )
                    raise

        return wrapper

    return decorator


def configure_development_logging() -> None:
    setup_logging(
        level="DEBUG", log_file="./logs/development.log", structured=False, enable_console=True
    )


def configure_production_logging() -> None:
    setup_logging(
        level="INFO", log_file="./logs/production.log", structured=True, enable_console=False
    )


def configure_test_logging() -> None:
    setup_logging(level="WARNING", log_file=None, structured=False, enable_console=False)


def auto_configure_logging() -> None:
    """Pick a logging profile from the ENVIRONMENT variable."""
    env = os.getenv("ENVIRONMENT", "development").lower()

    if env == "production":
        configure_production_logging()
    elif env in ("test", "testing"):
        configure_test_logging()
    else:
        configure_development_logging()

    get_logger(__name__).info("Logging configured for %s environment", env)


if not logging.getLogger(ROOT_LOGGER_NAME).handlers:
    auto_configure_logging()
