"""
Logging configuration for production use.

Provides structured logging with file and console output.
Integrates with config for environment-specific log levels.
Detection modules log through `logging.getLogger(__name__)`, so configuring
the "src" logger covers the whole engine.
"""

import logging
import logging.handlers
from pathlib import Path
from typing import Optional

from .config import config

ENGINE_LOGGER_NAME = "src"


def setup_logging(
    logger_name: str = ENGINE_LOGGER_NAME,
    logs_dir: Optional[Path] = None,
    level: Optional[str] = None,
) -> logging.Logger:
    """
    Configure and return a logger instance.

    Args:
        logger_name: Name of the logger (the package root by default)
        logs_dir: Directory for the rotating log file (config.logs_dir by default)
        level: Log level name (config.log_level by default)

    Returns:
        Configured logger instance
    """
    logger = logging.getLogger(logger_name)

    # Don't add handlers if logger already configured
    if logger.handlers:
        return logger

    level = level or config.log_level
    logs_dir = logs_dir or config.logs_dir
    logger.setLevel(level)

    formatter = logging.Formatter(
        fmt="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )

    console_handler = logging.StreamHandler()
    console_handler.setLevel(level)
    console_handler.setFormatter(formatter)
    logger.addHandler(console_handler)

    logs_dir.mkdir(parents=True, exist_ok=True)
    log_file = logs_dir / f"{logger_name}.log"
    file_handler = logging.handlers.RotatingFileHandler(
        log_file,
        maxBytes=10 * 1024 * 1024,  # 10MB
        backupCount=5,
    )
    file_handler.setLevel(level)
    file_handler.setFormatter(formatter)
    logger.addHandler(file_handler)

    return logger
