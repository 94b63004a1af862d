from __future__ import annotations

from logging.config import dictConfig

from .config import settings


def configure_logging(level: str | None = None) -> None:
    dictConfig(
        {
            "version": 1,
            "disable_existing_loggers": False,
            "formatters": {
                "default": {
                    "format": "%(asctime)s %(levelname)s [%(name)s] %(message)s",
                },
            },
            "handlers": {
                "console": {
                    "class": "logging.StreamHandler",
                    "formatter": "default",
                },
            },
            "root": {"handlers": ["console"], "level": "WARNING"},
            "loggers": {
                "finapp": {"level": (level or settings.LOG_LEVEL).upper()},
            },
        }
    )
