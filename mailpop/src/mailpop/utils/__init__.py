"""Expose the public utility surface for mailpop.

What:
  Re-export the structured logging helpers so callers can write
  ``from mailpop.utils import get_logger`` without knowing the module layout.

Interfaces:
  ``JsonLogger`` and ``get_logger``.
"""

from .logging import JsonLogger, get_logger

__all__ = [
    "JsonLogger",
    "get_logger",
]
