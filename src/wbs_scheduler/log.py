"""Logging configuration for the scheduler."""
from __future__ import annotations

import logging
import logging.handlers
from pathlib import Path

from .config import settings

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"


def configure_logging(level: str | None = None, log_file: str | None = None) -> logging.Logger:
    """
    Configure the package logger.

    Args:
        level: Log level name; defaults to settings.LOG_LEVEL
        log_file: Optional path for a rotating log file; defaults to settings.LOG_FILE

    Returns:
        The configured ``wbs_scheduler`` logger
    """
    logger = logging.getLogger("wbs_scheduler")
    logger.setLevel(level or settings.LOG_LEVEL)

    # Reconfiguring replaces earlier handlers instead of stacking them
    for handler in list(logger.handlers):
        logger.removeHandler(handler)
        handler.close()

    formatter = logging.Formatter(LOG_FORMAT)

    console_handler = logging.StreamHandler()
    console_handler.setFormatter(formatter)
    logger.addHandler(console_handler)

    log_file = log_file or settings.LOG_FILE
    if log_file:
        path = Path(log_file)
        path.parent.mkdir(parents=True, exist_ok=True)
        file_handler = logging.handlers.RotatingFileHandler(
            path,
            maxBytes=10485760,  # 10MB
            backupCount=5,
        )
        file_handler.setFormatter(formatter)
        logger.addHandler(file_handler)

    return logger
