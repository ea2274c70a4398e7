"""Structured logging — structlog routed through stdlib handlers.

Application events and third-party stdlib records share one pipeline: both
reach stdout and the rotating log file, rendered by the same formatter.
"""

import logging
import os
import sys
from logging.handlers import RotatingFileHandler
from typing import Optional

import structlog

# Per-request chatter that drowns grid events unless debugging
_QUIET_LOGGERS = ("httpx", "httpcore", "aiosqlite", "sqlalchemy.engine", "uvicorn.access")


def _formatter(renderer, shared_processors: list) -> structlog.stdlib.ProcessorFormatter:
    processors = [structlog.stdlib.ProcessorFormatter.remove_processors_meta]
    if isinstance(renderer, structlog.processors.JSONRenderer):
        processors.append(structlog.processors.format_exc_info)
    processors.append(renderer)
    return structlog.stdlib.ProcessorFormatter(
        foreign_pre_chain=shared_processors,
        processors=processors,
    )


def setup_logging(
    debug: bool = False,
    log_dir: str = "logs",
    log_max_bytes: int = 10_000_000,
    log_backup_count: int = 5,
    log_file: str = "routegrid.log",
) -> Optional[str]:
    """Configure structured logging for the application.

    Stdout renders for humans in debug mode and as JSON otherwise. The
    rotating file under ``log_dir`` is always JSON. Returns the log file
    path, or None when the directory is not writable.
    """
    log_level = logging.DEBUG if debug else logging.INFO

    shared_processors = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
    ]

    structlog.configure(
        processors=[
            structlog.stdlib.filter_by_level,
            *shared_processors,
            structlog.stdlib.ProcessorFormatter.wrap_for_formatter,
        ],
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )

    root_logger = logging.getLogger()
    root_logger.setLevel(log_level)

    # Clear existing handlers to avoid duplicates on reload
    root_logger.handlers.clear()

    console_renderer = structlog.dev.ConsoleRenderer() if debug else structlog.processors.JSONRenderer()
    stdout_handler = logging.StreamHandler(sys.stdout)
    stdout_handler.setLevel(log_level)
    stdout_handler.setFormatter(_formatter(console_renderer, shared_processors))
    root_logger.addHandler(stdout_handler)

    for name in _QUIET_LOGGERS:
        logging.getLogger(name).setLevel(log_level if debug else logging.WARNING)

    log_path: Optional[str] = None
    try:
        os.makedirs(log_dir, exist_ok=True)
        log_path = os.path.join(log_dir, log_file)
        file_handler = RotatingFileHandler(
            log_path,
            maxBytes=log_max_bytes,
            backupCount=log_backup_count,
            encoding="utf-8",
        )
        file_handler.setLevel(log_level)
        file_handler.setFormatter(_formatter(structlog.processors.JSONRenderer(), shared_processors))
        root_logger.addHandler(file_handler)
    except OSError:
        # Read-only filesystem: stdout only
        log_path = None

    return log_path


def get_logger(name: str, **initial_context) -> structlog.stdlib.BoundLogger:
    """Get a named structured logger, optionally with bound context."""
    logger = structlog.get_logger(name)
    return logger.bind(**initial_context) if initial_context else logger
