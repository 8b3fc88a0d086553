"""
Logging Configuration

Configures stdlib logging once at startup via dictConfig. Modules obtain
their loggers with ``logging.getLogger(__name__)``.
"""

import logging.config

from app.core.config import settings


def build_logging_config(level: str) -> dict:
    """Build the dictConfig mapping for the given root level."""
    return {
        "version": 1,
        "disable_existing_loggers": False,
        "formatters": {
            "default": {
                "format": "%(asctime)s - %(name)s - %(levelname)s - %(message)s",
            },
        },
        "handlers": {
            "console": {
                "class": "logging.StreamHandler",
                "level": level,
                "formatter": "default",
                "stream": "ext://sys.stdout",
            },
        },
        "root": {
            "level": level,
            "handlers": ["console"],
        },
        "loggers": {
            "app": {
                "level": level,
                "handlers": ["console"],
                "propagate": False,
            },
            "uvicorn.access": {
                "level": "INFO",
                "handlers": ["console"],
                "propagate": False,
            },
            "sqlalchemy.engine": {
                "level": "WARNING",
                "handlers": ["console"],
                "propagate": False,
            },
        },
    }


def setup_logging() -> None:
    """Apply the logging configuration using the level from settings."""
    logging.config.dictConfig(build_logging_config(settings.log_level.upper()))
