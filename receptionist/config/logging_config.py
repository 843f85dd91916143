"""
Logging setup for the receptionist bridge.

Every module logs through the single ``receptionist`` logger. Records go to
stdout and, unless disabled, to a size-rotated file so a day of calls can be
reviewed after the fact.

Environment:
    LOG_LEVEL: default level when none is passed explicitly
    LOG_DIR: directory for the rotating file; set to an empty string to
        log to stdout only
"""

import logging
import os
import sys
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import List, Optional

from receptionist.config.constants import LOGGER_NAME

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"

DEFAULT_LOG_DIR = "logs"
LOG_FILE_NAME = "receptionist.log"
MAX_LOG_SIZE = 10 * 1024 * 1024  # 10 MB
BACKUP_COUNT = 5


def _build_handlers(log_dir: Optional[str]) -> List[logging.Handler]:
    formatter = logging.Formatter(LOG_FORMAT)

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setFormatter(formatter)
    handlers: List[logging.Handler] = [console_handler]

    if log_dir:
        path = Path(log_dir)
        path.mkdir(parents=True, exist_ok=True)
        file_handler = RotatingFileHandler(
            path / LOG_FILE_NAME, maxBytes=MAX_LOG_SIZE, backupCount=BACKUP_COUNT
        )
        file_handler.setFormatter(formatter)
        handlers.append(file_handler)
    return handlers


def configure_logging(level: Optional[str] = None, log_dir: Optional[str] = None):
    """
    Configure the application logger.

    Safe to call more than once: existing handlers are replaced, not stacked.

    Args:
        level: Log level name; falls back to LOG_LEVEL, then INFO
        log_dir: Directory for the rotating log file; falls back to LOG_DIR,
            then ``logs``. An empty value disables file logging.

    Returns:
        logging.Logger: The configured application logger
    """
    level = (level or os.getenv("LOG_LEVEL", "INFO")).upper()
    if log_dir is None:
        log_dir = os.getenv("LOG_DIR", DEFAULT_LOG_DIR)

    logger = logging.getLogger(LOGGER_NAME)
    logger.setLevel(getattr(logging, level, logging.INFO))

    for handler in logger.handlers[:]:
        logger.removeHandler(handler)
        handler.close()

    try:
        handlers = _build_handlers(log_dir)
    except OSError as e:
        handlers = _build_handlers(None)
        for handler in handlers:
            logger.addHandler(handler)
        logger.warning(f"Could not set up file logging in {log_dir}: {e}")
    else:
        for handler in handlers:
            logger.addHandler(handler)

    logger.propagate = False
    logger.debug(f"Logging configured at {level}")
    return logger
