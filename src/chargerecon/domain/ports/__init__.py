"""Domain port definitions for adapters."""

from __future__ import annotations

from .components import ComponentGate
from .persistence import (
    ConfigStore,
    DuplicateEntryKeyError,
    EntryNotFoundError,
    LedgerReader,
    LedgerStore,
)
from .unit_of_work import (
    ChargeRepositories,
    ChargeUnitOfWork,
    RepositoryCollection,
    UnitOfWork,
)

__all__ = [
    "ChargeRepositories",
    "ChargeUnitOfWork",
    "ComponentGate",
    "ConfigStore",
    "DuplicateEntryKeyError",
    "EntryNotFoundError",
    "LedgerReader",
    "LedgerStore",
    "RepositoryCollection",
    "UnitOfWork",
]
