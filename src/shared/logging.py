"""Logging configuration for the storefront core.

Modules log through ``structlog.get_logger(__name__)`` with key/value context.
Entry points (the CLI, an embedding app) call ``configure_logging()`` once.

structlog events and plain stdlib records (httpx, asyncio) go through the same
``ProcessorFormatter``, so both render alike: a console renderer with rich
tracebacks in development, one JSON object per line in production.
"""

import logging
import logging.handlers
import sys
from pathlib import Path
from typing import Any

import structlog

DEFAULT_LEVELS = {
    "production": "INFO",
    "staging": "INFO",
    "development": "DEBUG",
    "test": "WARNING",
}

# Chatty third-party loggers, capped regardless of the storefront level
QUIET_LOGGERS = ("httpx", "httpcore", "asyncio")

LOG_FILE_NAME = "duka.log"
LOG_FILE_MAX_BYTES = 10 * 1024 * 1024
LOG_FILE_BACKUPS = 5


def get_log_level(environment: str, override: str | None = None) -> str:
    """Explicit level if given, else the environment's default."""
    return (override or DEFAULT_LEVELS.get(environment.lower(), "INFO")).upper()


def _is_json_environment(environment: str) -> bool:
    return environment.lower() in ("production", "staging")


def _shared_processors() -> list:
    return [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
    ]


def _renderer(environment: str):
    if _is_json_environment(environment):
        return structlog.processors.JSONRenderer()
    return structlog.dev.ConsoleRenderer(
        colors=sys.stdout.isatty(),
        exception_formatter=structlog.dev.RichTracebackFormatter(show_locals=False, max_frames=2),
    )


def _handlers(log_dir: Path | None) -> list[logging.Handler]:
    handlers: list[logging.Handler] = [logging.StreamHandler(sys.stdout)]
    if log_dir is not None:
        log_dir.mkdir(parents=True, exist_ok=True)
        handlers.append(
            logging.handlers.RotatingFileHandler(
                filename=log_dir / LOG_FILE_NAME,
                maxBytes=LOG_FILE_MAX_BYTES,
                backupCount=LOG_FILE_BACKUPS,
                encoding="utf-8",
            )
        )
    return handlers


def _passthrough(logger: Any, method_name: str, event_dict: dict) -> dict:
    # ConsoleRenderer formats exc_info itself
    return event_dict


def configure_logging(environment: str = "development", level: str | None = None, log_dir: Path | None = None) -> None:
    """Route structlog and stdlib logging to stdout (and a rotating file when ``log_dir`` is set)."""
    log_level = get_log_level(environment, level)
    shared = _shared_processors()

    formatter = structlog.stdlib.ProcessorFormatter(
        foreign_pre_chain=shared,
        processors=[
            structlog.stdlib.ProcessorFormatter.remove_processors_meta,
            structlog.processors.format_exc_info if _is_json_environment(environment) else _passthrough,
            _renderer(environment),
        ],
    )

    root = logging.getLogger()
    root.handlers = []
    root.setLevel(log_level)
    for handler in _handlers(log_dir):
        handler.setFormatter(formatter)
        root.addHandler(handler)

    for name in QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)

    structlog.configure(
        processors=[
            structlog.stdlib.filter_by_level,
            *shared,
            structlog.stdlib.ProcessorFormatter.wrap_for_formatter,
        ],
        wrapper_class=structlog.stdlib.BoundLogger,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )


def add_context(**kwargs: Any) -> None:
    """Bind key/values to every log event emitted from the current context."""
    structlog.contextvars.bind_contextvars(**kwargs)


def clear_context() -> None:
    structlog.contextvars.clear_contextvars()
