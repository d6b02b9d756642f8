"""
Package logging.

Every module logs through logging.getLogger(__name__). The library stays
silent unless the host application configures logging, or the environment
flag TWOVIEW_DEBUG=1 is set, which attaches a stream handler at DEBUG level.
"""
from __future__ import annotations

import logging
import os

PACKAGE_LOGGER = "twoview"
_DEBUG_ENV = "TWOVIEW_DEBUG"


def debug_enabled() -> bool:
    return os.environ.get(_DEBUG_ENV, "0") == "1"


def configure_logging(force_debug: bool = False) -> logging.Logger:
    """
    Install the package handlers once and return the package logger.

    - a NullHandler always, so "No handler found" warnings never show up
    - a StreamHandler with a "[twoview] ..." format when debugging is enabled
    """
    logger = logging.getLogger(PACKAGE_LOGGER)
    if not any(isinstance(h, logging.NullHandler) for h in logger.handlers):
        logger.addHandler(logging.NullHandler())

    if force_debug or debug_enabled():
        if not any(type(h) is logging.StreamHandler for h in logger.handlers):
            handler = logging.StreamHandler()
            handler.setFormatter(logging.Formatter("[%(name)s] %(message)s"))
            logger.addHandler(handler)
        logger.setLevel(logging.DEBUG)
    return logger
