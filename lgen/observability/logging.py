"""Centralised logging helpers for lgen."""

from __future__ import annotations

import logging
from typing import Dict, Optional, Union

_LOGGER_CACHE: Dict[str, logging.Logger] = {}

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"

LEVELS = {
    "debug": logging.DEBUG,
    "info": logging.INFO,
    "warn": logging.WARNING,
    "warning": logging.WARNING,
    "error": logging.ERROR,
}


def get_logger(name: str = "lgen") -> logging.Logger:
    """Return a cached :class:`logging.Logger` instance."""

    if name not in _LOGGER_CACHE:
        _LOGGER_CACHE[name] = logging.getLogger(name)
    return _LOGGER_CACHE[name]


def resolve_level(level: Union[str, int, None], default: int = logging.WARNING) -> int:
    if isinstance(level, int):
        return level
    if not level:
        return default
    return LEVELS.get(str(level).lower(), default)


def configure_logging(level: Union[str, int, None], *, logger: Optional[logging.Logger] = None) -> logging.Logger:
    """Set the level of the ``lgen`` logger and attach a console handler once."""

    target = logger or get_logger()
    target.setLevel(resolve_level(level))
    if not target.handlers:
        handler = logging.StreamHandler()
        handler.setFormatter(logging.Formatter(LOG_FORMAT))
        target.addHandler(handler)
    return target
