"""
Structured logging configuration for the Volunteer Hub backend.

Provides JSON-formatted logging with file rotation for production environments
and human-readable console logging for development.

Loggers:
- api: HTTP requests, responses, route-level errors
- services: Business logic (events, recurring series, calendar, bookmarks)
- db: Database operations and migrations
- tasks: Background work (AI summaries, scheduled materialization)
"""

import logging
import logging.handlers
import os
import sys
from pathlib import Path
from typing import Dict, Optional
import json
from datetime import datetime


LOGGER_NAMES = ["api", "services", "db", "tasks"]


class JSONFormatter(logging.Formatter):
    """
    Formatter that outputs logs as JSON for structured logging.

    Each log record includes:
    - timestamp: ISO 8601 format
    - level: Log level (INFO, ERROR, etc.)
    - logger: Logger name
    - message: Log message
    - module, function, line: Call site
    - Extra fields passed with ``extra={...}`` and exception info
    """

    # Attributes present on every LogRecord; anything else came from extra={}
    _RESERVED = set(
        logging.LogRecord("", 0, "", 0, "", (), None).__dict__.keys()
    ) | {"message", "asctime"}

    def format(self, record: logging.LogRecord) -> str:
        """Format log record as JSON string."""
        log_data = {
            "timestamp": datetime.utcnow().isoformat() + "Z",
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "module": record.module,
            "function": record.funcName,
            "line": record.lineno,
        }

        if record.exc_info:
            log_data["exception"] = self.formatException(record.exc_info)

        for key, value in record.__dict__.items():
            if key not in self._RESERVED and key not in log_data:
                log_data[key] = value

        return json.dumps(log_data, default=str)


class ConsoleFormatter(logging.Formatter):
    """
    Human-readable formatter for console output in development.

    Format: [TIMESTAMP] LEVEL - LOGGER - MESSAGE
    Example: [2026-01-08 10:30:45] INFO - volunteer_hub.api - Created next instance
    """

    def __init__(self):
        super().__init__(
            fmt="[%(asctime)s] %(levelname)s - %(name)s - %(message)s",
            datefmt="%Y-%m-%d %H:%M:%S"
        )


def _get_log_level() -> int:
    """
    Get log level from the VHUB_LOG_LEVEL environment variable.

    Returns:
        Log level constant, defaults to logging.INFO
    """
    level_str = os.environ.get("VHUB_LOG_LEVEL", "INFO").upper()
    return getattr(logging, level_str, logging.INFO)


def _get_log_dir() -> Path:
    """
    Get log directory from VHUB_LOG_DIR (default: ./logs), creating it.
    """
    log_dir = Path(os.environ.get("VHUB_LOG_DIR", "logs"))
    log_dir.mkdir(parents=True, exist_ok=True)
    return log_dir


def _is_production() -> bool:
    """Check VHUB_ENV for a production deployment."""
    env = os.environ.get("VHUB_ENV", "development").lower()
    return env == "production"


def configure_logging() -> Dict[str, logging.Logger]:
    """
    Configure structured logging for the backend.

    Behavior:
    - Production (VHUB_ENV=production):
      * JSON-formatted logs to one rotating file per logger
      * File rotation: 10MB max size, 5 backup files
    - Development (default):
      * Human-readable console output

    Returns:
        Dictionary mapping short logger names to configured Logger instances

    Example:
        >>> loggers = configure_logging()
        >>> loggers["services"].info("Created instance", extra={"series_guid": "ser_..."})
    """
    log_level = _get_log_level()
    is_prod = _is_production()
    log_dir = _get_log_dir() if is_prod else None

    loggers = {}

    for logger_name in LOGGER_NAMES:
        logger = logging.getLogger(f"volunteer_hub.{logger_name}")
        logger.setLevel(log_level)
        logger.propagate = False
        logger.handlers.clear()

        if is_prod:
            file_handler = logging.handlers.RotatingFileHandler(
                log_dir / f"{logger_name}.log",
                maxBytes=10 * 1024 * 1024,  # 10MB
                backupCount=5,
                encoding="utf-8"
            )
            file_handler.setLevel(log_level)
            file_handler.setFormatter(JSONFormatter())
            logger.addHandler(file_handler)
        else:
            console_handler = logging.StreamHandler(sys.stdout)
            console_handler.setLevel(log_level)
            console_handler.setFormatter(ConsoleFormatter())
            logger.addHandler(console_handler)

        loggers[logger_name] = logger

    return loggers


_loggers: Optional[Dict[str, logging.Logger]] = None


def get_logger(name: str) -> logging.Logger:
    """
    Get a configured logger by name.

    Args:
        name: Logger name (api, services, db, tasks)

    Returns:
        Configured Logger instance

    Raises:
        ValueError: If logger name is not recognized
    """
    global _loggers

    if _loggers is None:
        _loggers = configure_logging()

    if name not in _loggers:
        raise ValueError(
            f"Unknown logger name: {name}. "
            f"Valid names: {', '.join(_loggers.keys())}"
        )

    return _loggers[name]


def init_logging() -> Dict[str, logging.Logger]:
    """
    Initialize logging configuration (called on application startup).

    Returns:
        Dictionary of configured loggers
    """
    global _loggers
    _loggers = configure_logging()
    return _loggers
