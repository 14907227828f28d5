"""
Logging setup.

Modules log through ``logging.getLogger(__name__)``; this module attaches
handlers to the ``settlewright`` logger: a coloured console handler and a
daily file under the log directory (``test-YYYY-MM-DD.log``).
"""

import logging
from datetime import date
from pathlib import Path
from typing import Optional

ROOT_LOGGER = "settlewright"

COLORS = {
    logging.DEBUG: "\x1b[36m",
    logging.INFO: "\x1b[32m",
    logging.WARNING: "\x1b[33m",
    logging.ERROR: "\x1b[31m",
    logging.CRITICAL: "\x1b[31m",
}
RESET = "\x1b[0m"

LOG_FORMAT = "[%(asctime)s] [%(levelname)s] %(message)s"
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"


class ColorFormatter(logging.Formatter):
    """Wraps each record in the ANSI colour for its level."""

    def format(self, record: logging.LogRecord) -> str:
        message = super().format(record)
        color = COLORS.get(record.levelno)
        if not color:
            return message
        return f"{color}{message}{RESET}"


def log_file_path(log_dir: str) -> Path:
    return Path(log_dir) / f"test-{date.today().isoformat()}.log"


def configure_logging(level: Optional[str] = None, log_dir: Optional[str] = None) -> logging.Logger:
    """
    Attach console and file handlers to the package logger.

    Args:
        level: "debug", "info", "warning" or "error" (default from settings)
        log_dir: Directory for the daily log file (default from settings)

    Calling this again replaces the handlers it installed earlier.
    """
    if level is None or log_dir is None:
        from .config import get_settings

        settings = get_settings()
        level = level or settings.log_level
        log_dir = log_dir or settings.log_dir

    logger = logging.getLogger(ROOT_LOGGER)
    logger.setLevel(level.upper())

    for handler in [h for h in logger.handlers if getattr(h, "_settlewright", False)]:
        logger.removeHandler(handler)
        handler.close()

    console = logging.StreamHandler()
    console.setFormatter(ColorFormatter(LOG_FORMAT, DATE_FORMAT))

    path = log_file_path(log_dir)
    path.parent.mkdir(parents=True, exist_ok=True)
    file_handler = logging.FileHandler(path, encoding="utf-8")
    file_handler.setFormatter(logging.Formatter(LOG_FORMAT, DATE_FORMAT))

    for handler in (console, file_handler):
        handler._settlewright = True
        logger.addHandler(handler)
    return logger
