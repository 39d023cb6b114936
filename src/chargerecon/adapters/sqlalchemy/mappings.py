"""SQLAlchemy Core tables for the ledger and plugin configuration."""

from __future__ import annotations

import logging
import uuid
from typing import TYPE_CHECKING

from sqlalchemy import (
    JSON,
    Boolean,
    Column,
    Date,
    Enum,
    ForeignKey,
    Index,
    MetaData,
    Numeric,
    String,
    Table,
    UniqueConstraint,
    Uuid,
)

from chargerecon.domain.model import LedgerEntityType, PluginScope

if TYPE_CHECKING:
    from enum import StrEnum

    from sqlalchemy.engine import Engine

log = logging.getLogger(__name__)

UUIDColumnType = Uuid[uuid.UUID]


def _enum_values(enum_cls: type[StrEnum]) -> list[str]:
    return [member.value for member in enum_cls]


EntityTypeColumnType = Enum(LedgerEntityType, native_enum=False, values_callable=_enum_values)
ScopeColumnType = Enum(PluginScope, native_enum=False, values_callable=_enum_values)


metadata = MetaData(
    naming_convention={
        "ix": "ix_%(column_0_label)s",
        "uq": "uq_%(table_name)s_%(column_0_N_name)s",
        "ck": "ck_%(table_name)s_%(constraint_name)s",
        "fk": "fk_%(table_name)s_%(column_0_label)s_%(referred_table_name)s",
        "pk": "pk_%(table_name)s",
    }
)

ledger_account_entity_table = Table(
    "ledger_account_entity",
    metadata,
    Column("id", UUIDColumnType, primary_key=True, default=uuid.uuid4),
    Column("account_id", UUIDColumnType, nullable=False),
    Column("entity_type", EntityTypeColumnType, nullable=False),
    Column("entity_id", UUIDColumnType, nullable=False),
    UniqueConstraint("account_id", "entity_type", "entity_id"),
)

ledger_entry_table = Table(
    "ledger_entry",
    metadata,
    Column("id", UUIDColumnType, primary_key=True, default=uuid.uuid4),
    Column("charge_plugin", String(100), nullable=False),
    Column("charge_plugin_key", String(500), nullable=False),
    Column(
        "ea_id",
        UUIDColumnType,
        ForeignKey("ledger_account_entity.id", ondelete="RESTRICT"),
        nullable=False,
    ),
    Column("amount", Numeric(12, 2, asdecimal=True), nullable=False),
    Column("memo", String, nullable=True),
    Column("reference_type", String(50), nullable=True),
    Column("reference_id", String(100), nullable=True),
    Column("date", Date, nullable=False),
    Column("data", JSON, nullable=False, default=dict),
    UniqueConstraint("charge_plugin", "charge_plugin_key"),
    Index("ix_ledger_entry_ea_id", "ea_id"),
)

charge_plugin_config_table = Table(
    "charge_plugin_config",
    metadata,
    Column("id", UUIDColumnType, primary_key=True, default=uuid.uuid4),
    Column("plugin_id", String(100), nullable=False),
    Column("scope", ScopeColumnType, nullable=False),
    Column("employer_id", UUIDColumnType, nullable=True),
    Column("enabled", Boolean, nullable=False, default=True),
    Column("settings", JSON, nullable=False, default=dict),
    Index("ix_charge_plugin_config_plugin_id", "plugin_id"),
)


def create_all_tables(engine: Engine) -> None:
    """Create database tables for the charge schema."""

    log.info("Creating all tables")
    metadata.create_all(engine)
