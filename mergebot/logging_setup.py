"""Unified logging for mergebot (console + optional file).

All modules log through ``logging.getLogger(__name__)`` which places them
under the ``mergebot`` logger configured here.  Messages follow the
``"Action | key=value | key=value"`` convention so they grep well.
"""

import logging
import sys
from pathlib import Path

LOGGER_NAME = "mergebot"
LOG_FORMAT = "%(asctime)s %(levelname)-7s %(name)s | %(message)s"
DATE_FORMAT = "%Y-%m-%dT%H:%M:%S%z"

_HANDLER_MARK = "_mergebot_handler"


def configure_logging(
    level: str | int = "INFO",
    log_file: Path | None = None,
    console: bool = True,
) -> logging.Logger:
    """Configure the ``mergebot`` logger.

    Safe to call multiple times: handlers installed by a previous call are
    replaced, never duplicated.
    """
    logger = logging.getLogger(LOGGER_NAME)
    for handler in list(logger.handlers):
        if getattr(handler, _HANDLER_MARK, False):
            logger.removeHandler(handler)
            handler.close()

    formatter = logging.Formatter(LOG_FORMAT, datefmt=DATE_FORMAT)
    handlers: list[logging.Handler] = []
    if console:
        handlers.append(logging.StreamHandler(sys.stderr))
    if log_file is not None:
        log_file.parent.mkdir(parents=True, exist_ok=True)
        handlers.append(logging.FileHandler(log_file, encoding="utf-8"))

    for handler in handlers:
        handler.setFormatter(formatter)
        setattr(handler, _HANDLER_MARK, True)
        logger.addHandler(handler)

    logger.setLevel(level if isinstance(level, int) else level.upper())
    return logger
