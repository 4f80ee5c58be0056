"""Logging configuration for the Kanban service.

One stdout handler on the root logger; module loggers propagate to it. The
ordering audit lines (``kanban_service.ordering``) follow the configured
level like everything else, while SQLAlchemy's engine logger is held at
WARNING so statement echo never floods the output. Safe to call repeatedly.
"""
from __future__ import annotations
import copy
import logging
from logging.config import dictConfig
from typing import Optional

ORDERING_LOGGER = "kanban_service.ordering"

_BASE_CONFIG = {
    "version": 1,
    "disable_existing_loggers": False,
    "formatters": {
        "plain": {"format": "%(asctime)s %(levelname)s:%(name)s:%(message)s"},
    },
    "handlers": {
        "stdout": {
            "class": "logging.StreamHandler",
            "formatter": "plain",
            "stream": "ext://sys.stdout",
        }
    },
    "root": {"level": "INFO", "handlers": ["stdout"]},
    "loggers": {
        ORDERING_LOGGER: {"level": "INFO"},
        "sqlalchemy.engine": {"level": "WARNING"},
        "uvicorn": {"level": "INFO", "handlers": ["stdout"], "propagate": False},
        "uvicorn.access": {"level": "INFO", "handlers": ["stdout"], "propagate": False},
    },
}


def configure_logging(level: Optional[str] = None) -> None:
    """Install the stdout handler once; ``level`` overrides the root and ordering levels."""
    if logging.getLogger().handlers:
        return
    config = copy.deepcopy(_BASE_CONFIG)
    if level:
        config["root"]["level"] = level.upper()
        config["loggers"][ORDERING_LOGGER]["level"] = level.upper()
    dictConfig(config)
