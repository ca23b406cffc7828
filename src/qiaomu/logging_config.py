"""Logging configuration for the learning core."""
import logging
import sys
from logging.handlers import TimedRotatingFileHandler
from pathlib import Path
from typing import Optional, Union

from qiaomu.config import LoggingSettings, settings


def setup_logging(
    first_message: str = "",
    level: Optional[Union[int, str]] = None,
    logging_settings: Optional[LoggingSettings] = None,
) -> logging.Logger:
    """Configure logging for the entire application.

    Args:
        first_message: Banner line written once the handlers are in place.
        level: Optional logging level. If None, the configured level is used.
        logging_settings: Settings group to use instead of the global one.
    """
    config = logging_settings or settings.logging

    if level is None:
        level = config.level
    if isinstance(level, str):
        level = logging.getLevelName(level.upper())

    formatter = logging.Formatter(config.format)

    root_logger = logging.getLogger()
    root_logger.setLevel(level)

    # Remove any existing handlers to avoid duplicates
    for handler in root_logger.handlers[:]:
        root_logger.removeHandler(handler)

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setFormatter(formatter)
    root_logger.addHandler(console_handler)

    root_logger.info("================================================")
    if first_message:
        root_logger.info(first_message)
    root_logger.info("Logging configured with level: %s", logging.getLevelName(level))

    if config.dir is not None:
        try:
            log_dir = Path(config.dir) if config.dir else Path("logs")
            log_dir.mkdir(parents=True, exist_ok=True)

            log_file = log_dir / "qiaomu.log"
            file_handler = TimedRotatingFileHandler(
                log_file,
                when=config.rotation,
                interval=config.interval,
                backupCount=config.backup_count,
                encoding="utf-8",
            )
            file_handler.setFormatter(formatter)
            root_logger.addHandler(file_handler)

            root_logger.info(
                "Log file: %s (rotation: %s, interval: %d, backup_count: %d)",
                log_file, config.rotation, config.interval, config.backup_count,
            )
        except OSError as e:
            root_logger.warning("Could not set up file logging: %s", e)

    logging.getLogger("sqlalchemy.engine").setLevel(logging.WARNING)
    logging.getLogger("asyncio").setLevel(logging.WARNING)

    return root_logger


def get_logger(name: str) -> logging.Logger:
    """Get a logger instance with the specified name."""
    return logging.getLogger(name)
