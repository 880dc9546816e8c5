"""
Centralized logging configuration shared by the API and Celery workers.
"""

import logging
import logging.config
import os

_FORMAT = "%(asctime)s %(levelname)-8s [%(name)s] %(message)s"
_configured = False


def configure_logging(level: str = None) -> None:
    """Configure root logging once per process."""
    global _configured
    if _configured:
        return

    level = (level or os.environ.get("LOG_LEVEL") or "INFO").upper()

    logging.config.dictConfig(
        {
            "version": 1,
            "disable_existing_loggers": False,
            "formatters": {
                "default": {"format": _FORMAT, "datefmt": "%Y-%m-%d %H:%M:%S"}
            },
            "handlers": {
                "console": {
                    "class": "logging.StreamHandler",
                    "formatter": "default",
                }
            },
            "root": {"level": level, "handlers": ["console"]},
            "loggers": {
                "sqlalchemy.engine": {"level": "WARNING"},
                "celery": {"level": "INFO"},
                "httpx": {"level": "WARNING"},
            },
        }
    )
    _configured = True
