"""
Logging setup for sandrun.

Modules obtain loggers through :func:`get_logger`; only entry points call
:func:`setup_logging`.
"""

import logging
import sys

from rich.console import Console
from rich.logging import RichHandler

_ROOT_LOGGER_NAME = "sandrun"


def get_logger(name: str) -> logging.Logger:
    """Return a logger namespaced under the sandrun root logger."""
    if name == _ROOT_LOGGER_NAME or name.startswith(_ROOT_LOGGER_NAME + "."):
        return logging.getLogger(name)
    return logging.getLogger(f"{_ROOT_LOGGER_NAME}.{name}")


def setup_logging(level: str | int = "WARNING", rich_output: bool = True) -> logging.Logger:
    """
    Configure the sandrun root logger.

    Args:
        level: Logging level name or number
        rich_output: Render records with rich instead of a plain stream handler

    Returns:
        The configured root logger
    """
    if isinstance(level, str):
        level = logging.getLevelName(level.strip().upper())
        if not isinstance(level, int):
            level = logging.WARNING

    logger = logging.getLogger(_ROOT_LOGGER_NAME)
    logger.setLevel(level)

    for handler in list(logger.handlers):
        logger.removeHandler(handler)

    if rich_output:
        handler: logging.Handler = RichHandler(
            console=Console(stderr=True),
            show_path=False,
            rich_tracebacks=True,
        )
        handler.setFormatter(logging.Formatter("%(message)s"))
    else:
        handler = logging.StreamHandler(sys.stderr)
        handler.setFormatter(
            logging.Formatter("%(asctime)s %(levelname)s %(name)s: %(message)s")
        )

    logger.addHandler(handler)
    logger.propagate = False
    return logger
