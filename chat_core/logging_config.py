from logging.config import dictConfig

from chat_core import config

LOG_FORMAT = "%(asctime)s | %(levelname)s | %(name)s | %(message)s"
JSON_LOG_FORMAT = (
    '{"time":"%(asctime)s","level":"%(levelname)s",'
    '"logger":"%(name)s","message":"%(message)s"}'
)


def setup_logging(level: str = config.LOG_LEVEL, fmt: str = config.LOG_FORMAT) -> None:
    """Configure root logging for the service."""
    formatter = "json" if fmt == "json" else "default"
    dictConfig(
        {
            "version": 1,
            "disable_existing_loggers": False,
            "formatters": {
                "default": {"format": LOG_FORMAT},
                "json": {"format": JSON_LOG_FORMAT},
            },
            "handlers": {
                "console": {
                    "class": "logging.StreamHandler",
                    "formatter": formatter,
                },
            },
            "loggers": {
                # Keep SQL echo out of the service log unless SQL_DEBUG is set
                "sqlalchemy.engine": {"level": "WARNING"},
            },
            "root": {
                "level": level,
                "handlers": ["console"],
            },
        }
    )
