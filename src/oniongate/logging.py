"""
Logging setup.

Thin layer over the standard library: one stream handler on the root
logger with a compact, human-readable format. Modules keep using
``logging.getLogger(__name__)``.
"""

import logging
import sys
from enum import Enum
from typing import Union

LOG_FORMAT = "%(asctime)s %(levelname)-7s %(name)s: %(message)s"
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"


class LogLevel(Enum):
    DEBUG = logging.DEBUG
    INFO = logging.INFO
    WARNING = logging.WARNING
    ERROR = logging.ERROR


def parse_level(level: Union[LogLevel, str]) -> LogLevel:
    """Accept a LogLevel or its name, case-insensitive."""
    if isinstance(level, LogLevel):
        return level
    try:
        return LogLevel[level.strip().upper()]
    except KeyError:
        raise ValueError(f"Unknown log level: {level!r}") from None


def configure_logging(level: Union[LogLevel, str] = LogLevel.INFO) -> None:
    """Install the stderr handler and set the root level. Safe to call twice."""
    level = parse_level(level)
    root = logging.getLogger()
    root.setLevel(level.value)

    for handler in root.handlers:
        if getattr(handler, "_oniongate", False):
            handler.setLevel(level.value)
            return

    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(logging.Formatter(LOG_FORMAT, DATE_FORMAT))
    handler.setLevel(level.value)
    handler._oniongate = True
    root.addHandler(handler)

    # aiohttp's access log is noisy at INFO
    logging.getLogger("aiohttp.access").setLevel(max(level.value, logging.WARNING))
