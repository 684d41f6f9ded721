"""
Centralized logging configuration.
Every module logs through here instead of print().

Environment overrides:
    LOG_LEVEL - logger level (default from constants)
    LOG_FILE  - rotating log file; empty string logs to the console only
"""
import logging
import logging.handlers
import os
from pathlib import Path
from typing import Optional

from .constants import (
    LOG_LEVEL, LOG_FORMAT, LOG_FILE,
    LOG_MAX_SIZE_MB, LOG_BACKUP_COUNT
)

PROJECT_ROOT = Path(__file__).resolve().parent.parent


def _log_file() -> Optional[Path]:
    """Configured log file, relative paths anchored at the project root."""
    value = os.environ.get("LOG_FILE", LOG_FILE)
    if not value:
        return None
    path = Path(value)
    return path if path.is_absolute() else PROJECT_ROOT / path


def setup_logger(name: str = None) -> logging.Logger:
    """
    Get or create a configured logger.

    Usage:
        from config.logging_config import setup_logger
        logger = setup_logger(__name__)
        logger.info("Message here")

    Args:
        name: Logger name. If None, uses 'babellion'.

    Returns:
        Configured logging.Logger instance.
    """
    logger = logging.getLogger(name or 'babellion')

    # Avoid adding handlers multiple times
    if logger.handlers:
        return logger

    level = os.environ.get("LOG_LEVEL", LOG_LEVEL).upper()
    logger.setLevel(getattr(logging, level, logging.INFO))
    formatter = logging.Formatter(LOG_FORMAT)

    # Console handler - INFO level
    console = logging.StreamHandler()
    console.setLevel(logging.INFO)
    console.setFormatter(formatter)
    logger.addHandler(console)

    # File handler with rotation - DEBUG level
    log_path = _log_file()
    if log_path is not None:
        log_path.parent.mkdir(parents=True, exist_ok=True)
        file_handler = logging.handlers.RotatingFileHandler(
            log_path,
            maxBytes=LOG_MAX_SIZE_MB * 1024 * 1024,
            backupCount=LOG_BACKUP_COUNT,
            encoding="utf-8",
        )
        file_handler.setLevel(logging.DEBUG)
        file_handler.setFormatter(formatter)
        logger.addHandler(file_handler)

    return logger


def get_logger(name: str = None) -> logging.Logger:
    """
    Alias for setup_logger for convenience.

    Usage:
        from config.logging_config import get_logger
        logger = get_logger(__name__)
    """
    return setup_logger(name)


def log_context(translation_id: str, language: str) -> str:
    """Prefix used on every pipeline log line: [translation_id:language]."""
    return f"[{translation_id}:{language}]"


# Singleton logger for quick imports
# Usage: from config.logging_config import logger
logger = setup_logger('babellion')
