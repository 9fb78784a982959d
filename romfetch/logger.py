# romfetch/logger.py
import logging
import os
from logging.handlers import RotatingFileHandler

LOGGER_NAME = 'romfetch'


def setup_logging(log_file='logs/romfetch.log', log_level=logging.INFO):
    """
    Set up logging with both file and console output.

    Args:
        log_file: Path to log file (None disables the file handler)
        log_level: Minimum console log level (DEBUG, INFO, WARNING, ERROR)

    Returns:
        Logger instance
    """
    logger = logging.getLogger(LOGGER_NAME)
    logger.setLevel(logging.DEBUG)  # Capture everything, handlers filter

    # Prevent duplicate handlers if called multiple times
    if logger.handlers:
        return logger

    log_format = logging.Formatter(
        '%(asctime)s - [%(levelname)s] - %(message)s',
        datefmt='%Y-%m-%d %H:%M:%S'
    )

    console_handler = logging.StreamHandler()
    console_handler.setLevel(log_level)
    console_handler.setFormatter(log_format)
    logger.addHandler(console_handler)

    if log_file:
        log_dir = os.path.dirname(log_file)
        if log_dir:
            os.makedirs(log_dir, exist_ok=True)

        # File handler - keeps DEBUG, rotates at 10MB
        file_handler = RotatingFileHandler(
            log_file,
            maxBytes=10*1024*1024,
            backupCount=5
        )
        file_handler.setLevel(logging.DEBUG)
        file_handler.setFormatter(log_format)
        logger.addHandler(file_handler)

    return logger


def get_logger():
    """Get the configured logger instance."""
    return logging.getLogger(LOGGER_NAME)
