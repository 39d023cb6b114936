"""SQLAlchemy adapter package for chargerecon."""

from __future__ import annotations

from .mappings import (
    charge_plugin_config_table,
    create_all_tables,
    ledger_account_entity_table,
    ledger_entry_table,
    metadata,
)
from .repositories import SqlAlchemyConfigStore, SqlAlchemyLedgerStore
from .unit_of_work import (
    SqlAlchemyChargeUnitOfWork,
    StartupError,
    configured_engine,
    is_started,
    shutdown,
    startup,
)

__all__ = [
    "SqlAlchemyChargeUnitOfWork",
    "SqlAlchemyConfigStore",
    "SqlAlchemyLedgerStore",
    "StartupError",
    "charge_plugin_config_table",
    "configured_engine",
    "create_all_tables",
    "is_started",
    "ledger_account_entity_table",
    "ledger_entry_table",
    "metadata",
    "shutdown",
    "startup",
]
