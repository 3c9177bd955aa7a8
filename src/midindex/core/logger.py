"""
Logging setup.

Modules ask for ``get_logger(__name__)`` and get a loguru logger bound to
their name; nothing is configured on import. The entry point calls
``setup_logging`` once to install the stderr sink.
"""

from __future__ import annotations
import sys
from loguru import logger

_FORMAT = (
    "<green>{time:YYYY-MM-DD HH:mm:ss.SSS}</green> | <level>{level: <8}</level> | "
    "<cyan>{extra[name]}</cyan> | {message}"
)


def setup_logging(level: str = "INFO") -> None:
    logger.remove()
    logger.configure(extra={"name": "midindex"})
    logger.add(sys.stderr, format=_FORMAT, level=level.upper(), backtrace=False, diagnose=False)


def get_logger(name: str):
    return logger.bind(name=name)
