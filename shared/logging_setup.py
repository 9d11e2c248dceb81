"""Central logging configuration for the office tools.

Applies a single root stdout handler so every module logger emits without
per-module setup. Safe to call from each entry point: a second call is a
no-op, which avoids duplicate handlers under Streamlit/uvicorn reloaders.
"""

from __future__ import annotations

import logging
from logging.config import dictConfig

_DICT_CONFIG = {
    "version": 1,
    "disable_existing_loggers": False,
    "formatters": {
        "default": {
            "format": "%(asctime)s %(levelname)s:%(name)s:%(message)s",
        }
    },
    "handlers": {
        "console": {
            "class": "logging.StreamHandler",
            "formatter": "default",
            "stream": "ext://sys.stdout",
        }
    },
    "root": {"level": "INFO", "handlers": ["console"]},
}


def configure_logging(level: str = "INFO") -> None:
    """Configure application-wide logging once.

    If the root logger already has handlers, return without touching them.
    """
    root = logging.getLogger()
    if root.handlers:
        return
    config = dict(_DICT_CONFIG)
    config["root"] = {"level": level.upper(), "handlers": ["console"]}
    dictConfig(config)
