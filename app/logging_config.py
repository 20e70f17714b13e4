"""
Logging setup for the Oracle SQL proxy.

Two rotating files are written under ``LOG_DIR``: the general service log and
the SQL statement log (one JSON line per generated batch, logger ``app.sql``).
Console output is optional and follows the environment defaults in Settings.

Usage:
    from app.logging_config import configure_logging

    configure_logging(get_settings())
"""

from __future__ import annotations

import json
import logging
import logging.config
from pathlib import Path
from typing import Any

from app.config import Settings
from app.services.sql_log import SQL_LOGGER_NAME


class JsonFormatter(logging.Formatter):
    """Minimal JSON formatter for structured logs."""

    def format(self, record: logging.LogRecord) -> str:  # type: ignore[override]
        payload: dict[str, Any] = {
            "timestamp": self.formatTime(record, "%Y-%m-%dT%H:%M:%S"),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        if record.exc_info:
            payload["exc_info"] = self.formatException(record.exc_info)
        return json.dumps(payload, ensure_ascii=False)


def build_logging_config(settings: Settings) -> dict[str, Any]:
    log_dir = Path(settings.log_dir)
    level = settings.log_level or "INFO"

    handlers: dict[str, dict[str, Any]] = {
        "file": {
            "class": "logging.handlers.RotatingFileHandler",
            "formatter": "json",
            "level": level,
            "filename": str(log_dir / settings.log_file),
            "maxBytes": settings.log_max_bytes,
            "backupCount": settings.log_backup_count,
            "encoding": "utf-8",
        },
        "sql_file": {
            "class": "logging.handlers.RotatingFileHandler",
            "formatter": "raw",
            "level": "INFO",
            "filename": str(log_dir / settings.sql_log_file),
            "maxBytes": settings.sql_log_max_bytes,
            "backupCount": settings.sql_log_backup_count,
            "encoding": "utf-8",
        },
    }
    root_handlers = ["file"]
    if settings.log_console:
        handlers["console"] = {
            "class": "logging.StreamHandler",
            "formatter": "console",
            "level": level,
        }
        root_handlers.append("console")

    return {
        "version": 1,
        "disable_existing_loggers": False,
        "formatters": {
            "console": {
                "format": "%(asctime)s | %(levelname)s | %(name)s | %(message)s",
                "datefmt": "%Y-%m-%d %H:%M:%S",
            },
            "json": {"()": JsonFormatter},
            "raw": {"format": "%(message)s"},
        },
        "handlers": handlers,
        "loggers": {
            SQL_LOGGER_NAME: {
                "handlers": ["sql_file"],
                "level": "INFO",
                "propagate": False,
            },
        },
        "root": {"handlers": root_handlers, "level": level},
    }


def configure_logging(settings: Settings) -> None:
    Path(settings.log_dir).mkdir(parents=True, exist_ok=True)
    logging.config.dictConfig(build_logging_config(settings))


__all__ = ["JsonFormatter", "build_logging_config", "configure_logging"]
