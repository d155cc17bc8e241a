"""
Logging configuration.

Every module logs through ``logging.getLogger(__name__)``; this module wires
the root logger (and uvicorn's) to a single stdout handler that stamps each
record with the request correlation ID, and sets the
``fleet_backend`` level.
"""

import logging
import logging.config

from fleet_backend.app.core.config import settings


def build_logging_config(level: str) -> dict:
    return {
        "version": 1,
        "disable_existing_loggers": False,
        "filters": {
            "correlation_id": {
                "()": "fleet_backend.app.core.observability.CorrelationIdFilter",
            },
        },
        "formatters": {
            "standard": {
                "format": "%(asctime)s [%(name)s] %(levelname)s [%(correlation_id)s]: %(message)s",
                "datefmt": "%Y-%m-%d %H:%M:%S",
            },
        },
        "handlers": {
            "default": {
                "formatter": "standard",
                "class": "logging.StreamHandler",
                "stream": "ext://sys.stdout",
                "filters": ["correlation_id"],
            },
        },
        "root": {
            "handlers": ["default"],
            "level": "WARNING",
        },
        "loggers": {
            "fleet_backend": {
                "level": level,
            },
            "uvicorn": {
                "handlers": ["default"],
                "level": "INFO",
                "propagate": False,
            },
            "uvicorn.access": {
                "handlers": ["default"],
                "level": "INFO",
                "propagate": False,
            },
        },
    }


def configure_logging(level: str = None) -> None:
    """Apply the application logging configuration."""
    logging.config.dictConfig(build_logging_config((level or settings.log_level).upper()))
