"""
Logging setup for discord-purge.
"""
import logging
from typing import Optional

from discord_purge import settings

LOGGER_NAME = "discord_purge"


def setup_logging(log_level: Optional[str] = None, log_file: Optional[str] = None) -> logging.Logger:
    """Configure logging to file and console.

    The file gets everything at DEBUG; the console only shows INFO and up
    unless a lower level is requested.

    Args:
        log_level: DEBUG, INFO, WARNING or ERROR. Defaults to settings.LOG_LEVEL
        log_file: Path of the log file. Defaults to settings.LOG_FILE
    """
    if log_level is None:
        log_level = settings.LOG_LEVEL
    if log_file is None:
        log_file = settings.LOG_FILE

    level = getattr(logging, log_level.upper(), logging.INFO)

    logger = logging.getLogger(LOGGER_NAME)
    logger.setLevel(logging.DEBUG)
    for handler in list(logger.handlers):
        handler.close()
        logger.removeHandler(handler)
    logger.propagate = False

    # File handler
    file_handler = logging.FileHandler(log_file, mode='a', encoding='utf-8')
    file_handler.setLevel(logging.DEBUG)
    file_handler.setFormatter(logging.Formatter(
        '%(asctime)s [%(levelname)s] %(message)s', '%Y-%m-%d %H:%M:%S'
    ))
    logger.addHandler(file_handler)

    # Console handler (less verbose)
    console_handler = logging.StreamHandler()
    console_handler.setLevel(level)
    console_handler.setFormatter(logging.Formatter('%(levelname)s: %(message)s'))
    logger.addHandler(console_handler)

    logger.debug(f"Logging initialized (level={log_level}, file={log_file})")
    return logger
