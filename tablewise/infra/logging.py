"""Structured logging configuration."""

import logging
import sys
from pythonjsonlogger import jsonlogger
from tablewise.infra.config import config

# Vendor SDK loggers that are noisy at INFO
_QUIET_LOGGERS = ("sqlalchemy", "openai", "httpx", "google")


def setup_logging() -> logging.Logger:
    """Send every `tablewise.*` record to stdout as one JSON object per line."""
    logger = logging.getLogger("tablewise")
    level = logging.DEBUG if config.DEBUG else logging.getLevelName(config.LOG_LEVEL.upper())
    logger.setLevel(level if isinstance(level, int) else logging.INFO)

    logger.handlers = []

    formatter = jsonlogger.JsonFormatter(
        "%(asctime)s %(name)s %(levelname)s %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
        rename_fields={"levelname": "level", "name": "logger"},
        static_fields={"service": "tablewise", "env": config.APP_ENV},
    )

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setFormatter(formatter)
    logger.addHandler(console_handler)

    for name in _QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)

    return logger


app_logger = setup_logging()
