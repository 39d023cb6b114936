"""Logging setup for the chargerecon command line."""

from __future__ import annotations

import logging
from typing import Final

LOG_FORMAT: Final[str] = "%(asctime)s %(levelname)s [%(name)s] %(message)s"
_SQLALCHEMY_LOGGERS: Final[tuple[str, ...]] = ("sqlalchemy.engine", "sqlalchemy.pool")


def configure_logging(*, level: int = logging.INFO, force: bool = False) -> None:
    """Configure the root logger for CLI output.

    SQLAlchemy's engine and pool loggers stay at WARNING; at DEBUG they are raised to
    INFO so emitted SQL shows up. ``force=True`` replaces existing handlers.
    """

    logging.basicConfig(level=level, format=LOG_FORMAT, datefmt="%H:%M:%S", force=force)
    library_level = logging.INFO if level <= logging.DEBUG else logging.WARNING
    for name in _SQLALCHEMY_LOGGERS:
        logging.getLogger(name).setLevel(library_level)
