from __future__ import annotations

from .locks import KeyedLock
from .logging import configure_logging

__all__ = [
    "KeyedLock",
    "configure_logging",
]
