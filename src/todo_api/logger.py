"""
Logging setup shared by every module.

Modules obtain a logger with ``get_logger(__name__)``; the root handler is
installed on first use. The level starts from the LOG_LEVEL environment
variable and is set again from the loaded settings by ``set_level``.
"""
from __future__ import annotations

import logging
import os
import sys

_LOG_FORMAT = "%(asctime)s | %(levelname)-8s | %(name)s | %(message)s"
_DATE_FORMAT = "%Y-%m-%d %H:%M:%S"
_initialized = False


def _init_logging() -> None:
    global _initialized
    if _initialized:
        return
    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(logging.Formatter(_LOG_FORMAT, _DATE_FORMAT))
    logging.getLogger().addHandler(handler)
    _initialized = True
    set_level(os.getenv("LOG_LEVEL", "INFO"))


# PUBLIC_INTERFACE
def set_level(level_name: str) -> None:
    """Set the root logging level by name; unknown names mean INFO."""
    level = logging.getLevelName(level_name.strip().upper())
    logging.getLogger().setLevel(level if isinstance(level, int) else logging.INFO)


# PUBLIC_INTERFACE
def get_logger(name: str) -> logging.Logger:
    """Return a named logger, configuring the root logger once."""
    _init_logging()
    return logging.getLogger(name)
