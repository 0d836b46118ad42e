# Released under MIT License.
# Copyright (c) 2025 Ladislav Bartos and Robert Vacha Lab

import logging
import os

from rich.console import Console
from rich.logging import RichHandler

from .config import CFG


def _debugging() -> bool:
    return os.environ.get(CFG.env_vars.debug_mode) is not None


def _rich_handler(level: int, show_time: bool) -> RichHandler:
    return RichHandler(
        console=Console(stderr=True),
        level=level,
        show_time=show_time,
        show_path=False,
        log_time_format=CFG.date_formats.standard,
        rich_tracebacks=True,
        tracebacks_width=None,
        tracebacks_code_width=None,
    )


def get_logger(name: str, show_time: bool = False) -> logging.Logger:
    """
    Get a gridq logger printing to stderr through rich.

    Setting the debug environment variable lowers the level to DEBUG and
    adds timestamps to every message.
    """
    logger = logging.getLogger(name)
    level = logging.DEBUG if _debugging() else logging.INFO
    logger.setLevel(level)

    if not logger.handlers:
        logger.addHandler(_rich_handler(level, show_time or level == logging.DEBUG))
        logger.propagate = False

    return logger
