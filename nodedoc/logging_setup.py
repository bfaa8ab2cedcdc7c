"""Logging configuration for the node document server.

One stdout handler on the root logger, installed once. The ``nodedoc``
package logger carries the configured level (``logging.level`` /
``NODEDOC_LOG_LEVEL``) so lock and render tracing can be switched on with
``DEBUG`` without making third-party libraries noisy. Uvicorn's loggers
share the handler; access lines use a shorter format.
"""
from __future__ import annotations

import logging
from logging.config import dictConfig
from typing import Any, Dict

LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")
PACKAGE_LOGGER = "nodedoc"


def _dict_config(level: str) -> Dict[str, Any]:
    return {
        "version": 1,
        "disable_existing_loggers": False,
        "formatters": {
            "default": {"format": "%(asctime)s %(levelname)s:%(name)s:%(message)s"},
            "access": {"format": "%(asctime)s access:%(message)s"},
        },
        "handlers": {
            "console": {
                "class": "logging.StreamHandler",
                "formatter": "default",
                "stream": "ext://sys.stdout",
            },
            "access": {
                "class": "logging.StreamHandler",
                "formatter": "access",
                "stream": "ext://sys.stdout",
            },
        },
        "root": {"level": "INFO", "handlers": ["console"]},
        "loggers": {
            PACKAGE_LOGGER: {"level": level},
            "uvicorn": {"level": "INFO", "handlers": ["console"], "propagate": False},
            "uvicorn.error": {"level": "INFO", "handlers": ["console"], "propagate": False},
            "uvicorn.access": {"level": "INFO", "handlers": ["access"], "propagate": False},
        },
    }


def configure_logging(level: str = "INFO") -> None:
    """Install the stdout handler once and apply ``level`` to nodedoc loggers.

    When the root logger already has handlers (reloaders, test runners) only
    the package level is updated, so output is never duplicated.
    """
    name = str(level).strip().upper()
    if name not in LEVELS:
        raise ValueError(f"unknown log level {level!r}; expected one of {', '.join(LEVELS)}")
    if logging.getLogger().handlers:
        logging.getLogger(PACKAGE_LOGGER).setLevel(name)
        return
    dictConfig(_dict_config(name))


__all__ = ["LEVELS", "configure_logging"]
