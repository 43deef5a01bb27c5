"""Provide minimal logging helpers for CLI-style output."""

from __future__ import annotations
import logging

_LOGGER = logging.getLogger("tcwstat")


def configure_logging(*, level: str | int = "INFO", fmt: str = "%(message)s") -> None:
    """Configure tcwstat logging once.

    Args:
        level (str | int): Logging level (e.g., "INFO", "DEBUG").
        fmt (str): Logging format string.
    """
    if _LOGGER.handlers:
        return
    logging.basicConfig(level=level, format=fmt)


def warn(msg: str) -> None:
    """Emit a warning message.

    Args:
        msg (str): Warning message text.

    Examples:
        >>> warn("3 empty atom bins after merging")
    """
    configure_logging()
    _LOGGER.warning(msg)


def info(msg: str) -> None:
    """Emit an informational message.

    Args:
        msg (str): Message text.

    Examples:
        >>> info("Merging atoms")
    """
    configure_logging()
    _LOGGER.info(msg)


def debug(msg: str) -> None:
    """Emit a debug message."""
    configure_logging()
    _LOGGER.debug(msg)
