# src/fishbone/utils/log.py

"""
Logging setup for fishbone.

Library modules only call ``logging.getLogger(__name__)``; applications
opt in to console output with :func:`setup_logging`.

Examples
--------
>>> from fishbone.utils.log import setup_logging
>>> logger = setup_logging("WARNING", rich=False)
>>> logger.name
'fishbone'
"""

from __future__ import annotations
import logging
from typing import Union

from rich.console import Console
from rich.logging import RichHandler

__all__ = [
    "setup_logging",
]

_FORMAT = "%(message)s"
_PLAIN_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"


def setup_logging(level: Union[int, str] = "INFO", *, rich: bool = True,
                  console: Console | None = None) -> logging.Logger:
    """
    Attach a single handler to the ``fishbone`` logger.

    Parameters
    ----------
    level : int or str, default "INFO"
        Logging level for the package logger.
    rich : bool, default True
        Use :class:`rich.logging.RichHandler`; otherwise a plain stream handler.
    console : rich.console.Console, optional
        Console shared with progress bars, so log lines and bars interleave cleanly.

    Returns
    -------
    logging.Logger
        The configured package logger.
    """
    logger = logging.getLogger("fishbone")
    for h in list(logger.handlers):
        logger.removeHandler(h)

    if rich:
        handler: logging.Handler = RichHandler(console=console, show_path=False, rich_tracebacks=True)
        handler.setFormatter(logging.Formatter(_FORMAT))
    else:
        handler = logging.StreamHandler()
        handler.setFormatter(logging.Formatter(_PLAIN_FORMAT))

    logger.addHandler(handler)
    logger.setLevel(level)
    logger.propagate = False
    return logger
