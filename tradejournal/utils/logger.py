"""Logging setup for the trade journal.

Library modules log through ``logging.getLogger(__name__)``; this module
attaches handlers to the ``tradejournal`` logger once, at application
start.
"""

import logging
import sys
from pathlib import Path
from typing import Optional

LOGGER_NAME = "tradejournal"

_FORMAT = "[%(asctime)s] %(levelname)-8s %(name)s - %(message)s"
_DATE_FORMAT = "%Y-%m-%d %H:%M:%S"


def setup_logging(level: str = "INFO", log_file: Optional[Path] = None) -> logging.Logger:
    """Configure the package logger with console and optional file output.

    Calling it again replaces the previous handlers.

    Args:
        level: Console log level name.
        log_file: If given, DEBUG and above are also written here.

    Returns:
        The configured package logger.
    """
    log = logging.getLogger(LOGGER_NAME)
    log.setLevel(logging.DEBUG)

    for handler in list(log.handlers):
        log.removeHandler(handler)
        handler.close()

    fmt = logging.Formatter(_FORMAT, datefmt=_DATE_FORMAT)

    console = logging.StreamHandler(sys.stderr)
    console.setLevel(getattr(logging, level.upper(), logging.INFO))
    console.setFormatter(fmt)
    log.addHandler(console)

    if log_file is not None:
        log_file.parent.mkdir(parents=True, exist_ok=True)
        file_h = logging.FileHandler(log_file, encoding="utf-8")
        file_h.setLevel(logging.DEBUG)
        file_h.setFormatter(fmt)
        log.addHandler(file_h)

    return log
