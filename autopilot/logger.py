"""Logging setup.

Level comes from LOG_LEVEL (default INFO). LOG_FORMAT=json switches the root
handler to one JSON object per line, for log shippers.
"""
import json
import logging
import os
import sys
import traceback
from datetime import datetime, timezone
from typing import Any

# uvicorn's access log duplicates the request middleware
QUIET_LOGGERS = ("uvicorn.access", "asyncio")

_logger_cache: dict[str, logging.Logger] = {}


class JSONFormatter(logging.Formatter):
    """Format log records as JSON."""

    def format(self, record: logging.LogRecord) -> str:
        log_data: dict[str, Any] = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        if record.exc_info and record.exc_info[0] is not None:
            log_data["exception"] = {
                "type": record.exc_info[0].__name__,
                "message": str(record.exc_info[1]) if record.exc_info[1] else None,
                "traceback": traceback.format_exception(*record.exc_info),
            }
        return json.dumps(log_data, default=str)


def configure_logging(level: str | None = None, fmt: str | None = None) -> None:
    """Install a stdout handler on the root logger. Safe to call more than once."""
    level_name = (level or os.environ.get("LOG_LEVEL", "INFO")).upper()
    log_level = getattr(logging, level_name, logging.INFO)
    handler = logging.StreamHandler(sys.stdout)
    if (fmt or os.environ.get("LOG_FORMAT", "")).lower() == "json":
        handler.setFormatter(JSONFormatter())
    else:
        handler.setFormatter(logging.Formatter("%(asctime)s - %(name)s - %(levelname)s - %(message)s"))
    logging.basicConfig(level=log_level, handlers=[handler], force=True)
    for name in QUIET_LOGGERS:
        logging.getLogger(name).setLevel(max(log_level, logging.INFO))


def get_logger(name: str) -> logging.Logger:
    if name not in _logger_cache:
        _logger_cache[name] = logging.getLogger(name)
    return _logger_cache[name]
