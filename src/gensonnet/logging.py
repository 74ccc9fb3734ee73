"""Logging setup for gensonnet commands."""

from __future__ import annotations

import logging

from rich.console import Console
from rich.logging import RichHandler

_LOGGER_NAME = "gensonnet"


def get_logger(name: str | None = None) -> logging.Logger:
    """Return a logger under the gensonnet hierarchy."""
    full_name = f"{_LOGGER_NAME}.{name}" if name else _LOGGER_NAME
    return logging.getLogger(full_name)


def configure_logging(*, verbose: bool = False) -> logging.Logger:
    """Route gensonnet log records to stderr through rich.

    Warnings and errors only by default; ``verbose`` enables debug output.
    """
    level = logging.DEBUG if verbose else logging.WARNING
    logger = logging.getLogger(_LOGGER_NAME)
    logger.setLevel(level)
    logger.propagate = False

    # Reset handlers to avoid duplicate output when the CLI is invoked repeatedly.
    for handler in list(logger.handlers):
        logger.removeHandler(handler)

    handler = RichHandler(
        console=Console(stderr=True),
        show_time=verbose,
        show_path=False,
        markup=False,
    )
    handler.setLevel(level)
    logger.addHandler(handler)
    return logger


__all__ = ["configure_logging", "get_logger"]
