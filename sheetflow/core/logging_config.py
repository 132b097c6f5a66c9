"""
Logging setup for the sheetflow service.

One console handler on the root logger; pipeline modules log under the
``sheetflow`` namespace and the HTTP client stack is kept at WARNING.
"""
from __future__ import annotations

from logging.config import dictConfig
from typing import Optional


_is_configured = False


def configure_logging(level: Optional[str] = None) -> None:
    """
    Install the console handler once; later calls are no-ops.

    Args:
        level: log level name for the root and ``sheetflow`` loggers, INFO when omitted.
    """
    global _is_configured

    if _is_configured:
        return

    log_level = (level or "INFO").upper()

    dictConfig(
        {
            "version": 1,
            "disable_existing_loggers": False,
            "formatters": {
                "standard": {
                    "format": "%(asctime)s | %(levelname)-7s | %(name)s | %(message)s",
                    "datefmt": "%Y-%m-%d %H:%M:%S",
                }
            },
            "handlers": {
                "console": {
                    "class": "logging.StreamHandler",
                    "stream": "ext://sys.stdout",
                    "formatter": "standard",
                    "level": log_level,
                }
            },
            "root": {
                "handlers": ["console"],
                "level": log_level,
            },
            "loggers": {
                # requests/urllib3 are chatty at DEBUG when streaming remote sources
                "urllib3": {"level": "WARNING"},
                "sheetflow": {"level": log_level},
            },
        }
    )

    _is_configured = True
