"""
Centralized logging configuration for Tender Tracker
"""
import logging
import sys
from datetime import datetime
import os

from config.settings import LOGS_DIR as _CONFIGURED_LOGS_DIR, LOG_LEVEL

# Create logs directory if it doesn't exist
LOGS_DIR = _CONFIGURED_LOGS_DIR or os.path.join(
    os.path.dirname(os.path.dirname(os.path.abspath(__file__))), "logs"
)
os.makedirs(LOGS_DIR, exist_ok=True)

# Define log format
LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"

formatter = logging.Formatter(LOG_FORMAT, DATE_FORMAT)


def _daily_file_handler(prefix: str, level: int) -> logging.FileHandler:
    path = os.path.join(LOGS_DIR, f"{prefix}_{datetime.now().strftime('%Y%m%d')}.log")
    handler = logging.FileHandler(path, encoding="utf-8", delay=True)
    handler.setLevel(level)
    handler.setFormatter(formatter)
    return handler


# Console handler
console_handler = logging.StreamHandler(sys.stdout)
console_handler.setLevel(getattr(logging, LOG_LEVEL, logging.INFO))
console_handler.setFormatter(formatter)

# Application, error and tender pipeline logs
file_handler = _daily_file_handler("app", logging.DEBUG)
error_handler = _daily_file_handler("error", logging.ERROR)
tender_handler = _daily_file_handler("tender", logging.DEBUG)


def setup_logger(name: str, log_type: str = "app") -> logging.Logger:
    """
    Setup and return a logger with appropriate handlers

    Args:
        name: Logger name (usually __name__ from calling module)
        log_type: Type of log - "app" for the API, "tender" for the
            ingestion and retention loops

    Returns:
        Configured logger instance
    """
    logger = logging.getLogger(name)

    # Only add handlers if not already added (prevents duplicate logs)
    if not logger.handlers:
        logger.setLevel(logging.DEBUG)

        logger.addHandler(console_handler)
        logger.addHandler(error_handler)

        if log_type == "tender":
            logger.addHandler(tender_handler)
        else:
            logger.addHandler(file_handler)

    return logger


def get_logger(name: str, log_type: str = "app") -> logging.Logger:
    """Get or create a logger - convenience wrapper"""
    return setup_logger(name, log_type)
