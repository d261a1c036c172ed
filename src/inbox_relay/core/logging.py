"""Logging configuration helpers."""

from __future__ import annotations

import logging
import logging.config
from typing import Any

from .config import LoggingSettings

# Third-party loggers that log every request at INFO.
_CHATTY_LOGGERS: tuple[str, ...] = ("httpx", "httpcore", "uvicorn.access")


def _formatter_config(structured: bool) -> dict[str, Any]:
    """Return a dictConfig formatter fragment for the requested style."""
    if structured:
        return {
            "format": '{{"ts": "{asctime}", "level": "{levelname}", '
            '"logger": "{name}", "thread": "{threadName}", "msg": "{message}"}}',
            "style": "{",
        }
    return {
        "format": "%(asctime)s %(levelname)s [%(threadName)s] %(name)s %(message)s",
    }


def configure_logging(settings: LoggingSettings) -> None:
    """Configure application logging according to provided settings."""
    dict_config: dict[str, Any] = {
        "version": 1,
        "disable_existing_loggers": False,
        "formatters": {
            "default": _formatter_config(settings.structured),
        },
        "handlers": {
            "console": {
                "class": "logging.StreamHandler",
                "formatter": "default",
                "level": settings.level,
            },
        },
        "loggers": {
            name: {"level": "WARNING", "propagate": True} for name in _CHATTY_LOGGERS
        },
        "root": {
            "handlers": ["console"],
            "level": settings.level,
        },
    }

    logging.config.dictConfig(dict_config)
    logging.getLogger(__name__).debug(
        "Logging configured (level=%s, structured=%s)",
        settings.level,
        settings.structured,
    )


__all__ = ["configure_logging"]
