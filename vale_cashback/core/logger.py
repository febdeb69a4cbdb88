# vale_cashback/core/logger.py
import os
import logging
from logging.handlers import RotatingFileHandler

from vale_cashback.core.config import IS_PRODUCTION, LOG_DIR, LOG_LEVEL


def setup_logger(name, log_file=None, level=None):
    """Set up a logger with file rotation"""
    level = level or getattr(logging, LOG_LEVEL.upper(), logging.INFO)
    logger = logging.getLogger(name)

    # Avoid adding handlers multiple times
    if logger.handlers:
        return logger

    logger.setLevel(level)

    if LOG_DIR:
        os.makedirs(LOG_DIR, exist_ok=True)
        file_handler = RotatingFileHandler(
            log_file or os.path.join(LOG_DIR, f"{name}.log"),
            maxBytes=1024 * 1024,
            backupCount=10
        )
        file_handler.setFormatter(logging.Formatter(
            "%(asctime)s %(levelname)s: %(message)s [in %(pathname)s:%(lineno)d]"
        ))
        file_handler.setLevel(level)
        logger.addHandler(file_handler)

    # Console handler for development
    if not IS_PRODUCTION:
        console_handler = logging.StreamHandler()
        console_handler.setLevel(logging.DEBUG)
        console_handler.setFormatter(logging.Formatter(
            "%(name)s - %(levelname)s - %(message)s"
        ))
        logger.addHandler(console_handler)

    return logger


app_logger = setup_logger("app")
ledger_logger = setup_logger("ledger")
