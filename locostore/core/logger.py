"""
Centralized logging setup for the loco store.

Provides console and rotating file output with configuration from config.json.
Uses a guard to prevent multiple initialization.
"""

import logging
import sys
from logging.handlers import RotatingFileHandler
from pathlib import Path

from .config_loader import LoggingConfig


LOG_FILE_NAME = "locostore.log"

# aiosqlite logs every queued call at DEBUG
_NOISY_LOGGERS = ("aiosqlite",)

_logger_initialized = False


def setup_logging(
    logging_config: LoggingConfig = None,
    logs_directory: Path = None
) -> None:
    """
    Initialize the root logger with console and optional file handlers.

    Args:
        logging_config: Level, format and rotation settings. Defaults to
                        INFO on the console.
        logs_directory: Directory for log files. If None, file logging disabled.
    """
    global _logger_initialized

    if _logger_initialized:
        return

    if logging_config is None:
        logging_config = LoggingConfig(
            level="INFO",
            format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
            max_file_size_mb=10,
            backup_count=5
        )

    root_logger = logging.getLogger()
    root_logger.setLevel(getattr(logging, logging_config.level.upper(), logging.INFO))

    formatter = logging.Formatter(logging_config.format)

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setFormatter(formatter)
    root_logger.addHandler(console_handler)

    if logs_directory:
        logs_directory = Path(logs_directory)
        logs_directory.mkdir(parents=True, exist_ok=True)

        file_handler = RotatingFileHandler(
            logs_directory / LOG_FILE_NAME,
            maxBytes=logging_config.max_file_size_mb * 1024 * 1024,
            backupCount=logging_config.backup_count,
            encoding="utf-8"
        )
        file_handler.setFormatter(formatter)
        root_logger.addHandler(file_handler)

    for name in _NOISY_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)

    _logger_initialized = True


def get_logger(name: str) -> logging.Logger:
    """
    Get a named logger instance.

    Automatically initializes logging from config on first call, falling
    back to console defaults when no config file can be found.

    Args:
        name: Logger name, typically __name__ of the calling module.

    Returns:
        Configured Logger instance.
    """
    if not _logger_initialized:
        try:
            from .config_loader import get_config
            config = get_config()
            setup_logging(config.logging, config.paths.logs_directory)
        except Exception:
            setup_logging()

    return logging.getLogger(name)
