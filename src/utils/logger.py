# src/utils/logger.py
import logging
import sys
from typing import Optional, Union

DEFAULT_FORMAT = "[%(asctime)s] [%(levelname)s] [%(name)s]: %(message)s"
DEFAULT_DATEFMT = "%Y-%m-%d %H:%M:%S"


def _resolve_level(level: Union[int, str, None]) -> int:
    if level is None:
        from core.config import settings

        level = settings.LOG_LEVEL
    if isinstance(level, str):
        return logging.getLevelName(level.upper()) if level.strip() else logging.INFO
    return level


def setup_logger(
    name: str,
    level: Union[int, str, None] = None,
    format_string: Optional[str] = None,
    datefmt: Optional[str] = None,
) -> logging.Logger:
    """
    Set up a logger with consistent configuration.

    Args:
        name: Logger name, upper-case component tag (e.g. "PRESCRIPTION_ENGINE")
        level: Logging level; defaults to settings.LOG_LEVEL
        format_string: Custom format string for log messages
        datefmt: Custom date format string

    Returns:
        Configured logger instance
    """
    logger = logging.getLogger(name)

    # Avoid adding handlers multiple times
    if logger.handlers:
        return logger

    resolved = _resolve_level(level)
    if not isinstance(resolved, int):
        resolved = logging.INFO
    logger.setLevel(resolved)

    formatter = logging.Formatter(
        format_string or DEFAULT_FORMAT, datefmt=datefmt or DEFAULT_DATEFMT
    )

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setLevel(resolved)
    console_handler.setFormatter(formatter)
    logger.addHandler(console_handler)

    # Prevent propagation to root logger to avoid duplicate messages
    logger.propagate = False

    return logger


def add_file_handler(path: str, level: int = logging.INFO) -> logging.Handler:
    """Attach a file handler for complete logs to the root logger"""
    file_handler = logging.FileHandler(path)
    file_handler.setLevel(level)
    file_handler.setFormatter(logging.Formatter("%(asctime)s [%(levelname)s] %(message)s"))
    logging.getLogger().addHandler(file_handler)
    return file_handler
