"""Loggers for sqlchain.

Every module logs through :func:`get_logger`, which keeps loggers under the
``sqlchain`` namespace. sqlchain installs no handlers; applications configure
output through the standard :mod:`logging` machinery.
"""

import logging
from typing import Any, Optional

__all__ = ("get_logger", "log_with_context")

_ROOT = "sqlchain"


def get_logger(name: Optional[str] = None) -> logging.Logger:
    """Get a logger under the ``sqlchain`` namespace.

    Args:
        name: Dotted suffix such as ``"builder"``. Names already starting with
            ``sqlchain`` are used as is.

    Returns:
        The logger.
    """
    if name is None:
        return logging.getLogger(_ROOT)
    if not name.startswith(_ROOT):
        name = f"{_ROOT}.{name}"
    return logging.getLogger(name)


def log_with_context(logger: logging.Logger, level: int, event: str, **fields: Any) -> None:
    """Log ``event`` followed by ``key=value`` pairs.

    The fields are also attached to the record as ``extra_fields`` for handlers
    that emit structured output.
    """
    if not logger.isEnabledFor(level):
        return
    rendered = " ".join(f"{key}={value!r}" for key, value in fields.items())
    logger.log(level, "%s %s", event, rendered, extra={"extra_fields": fields})
