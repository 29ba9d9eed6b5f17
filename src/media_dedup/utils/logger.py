"""Logging configuration for media-dedup.

Console records go to stderr; stdout carries command output such as
``media-dedup list --json``.
"""

import logging
import sys
from pathlib import Path
from typing import Optional

PACKAGE = "media_dedup"
CONSOLE_FORMAT = "%(levelname)s: %(message)s"
FILE_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"


def setup_logger(
    name: str = PACKAGE,
    level: int = logging.INFO,
    log_file: Optional[Path] = None,
) -> logging.Logger:
    """
    Configure a module logger with a console handler and an optional log file.

    Calling it again for the same name replaces the handlers it installed.

    Args:
        name: Logger name, normally the calling module's __name__
        level: Console logging level (default: INFO)
        log_file: File receiving every record down to DEBUG

    Returns:
        Configured logger instance
    """
    logger = logging.getLogger(name)
    logger.setLevel(level)
    logger.handlers.clear()

    console_handler = logging.StreamHandler(sys.stderr)
    console_handler.setLevel(level)
    console_handler.setFormatter(logging.Formatter(CONSOLE_FORMAT))
    logger.addHandler(console_handler)

    if log_file:
        log_file.parent.mkdir(parents=True, exist_ok=True)
        file_handler = logging.FileHandler(log_file, encoding="utf-8")
        file_handler.setLevel(logging.DEBUG)
        file_handler.setFormatter(
            logging.Formatter(FILE_FORMAT, datefmt="%Y-%m-%d %H:%M:%S")
        )
        logger.addHandler(file_handler)

    return logger


def set_package_level(level: int) -> None:
    """
    Change the level of every media_dedup logger already created.

    Args:
        level: New logging level
    """
    for name, candidate in logging.Logger.manager.loggerDict.items():
        if not name.startswith(PACKAGE) or not isinstance(candidate, logging.Logger):
            continue
        candidate.setLevel(level)
        for handler in candidate.handlers:
            if isinstance(handler, logging.StreamHandler) and not isinstance(
                handler, logging.FileHandler
            ):
                handler.setLevel(level)
