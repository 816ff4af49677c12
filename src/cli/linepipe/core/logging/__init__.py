"""Logging utilities for linepipe."""

from . import common, formatter, handler, levels, logger, utils

__all__ = [
    "common",
    "formatter",
    "handler",
    "levels",
    "logger",
    "utils",
]
