"""Repository implementations backed by SQLAlchemy sessions.

The ports are async, but these adapters run synchronous ``Session`` calls inline, so
none of their awaits yield to the event loop and concurrent dispatches on one loop
run one store call at a time. The dispatcher's per-key lock only serialises work
against stores that do suspend. Transaction boundaries belong to the unit of work.
"""

from __future__ import annotations

import uuid
from typing import TYPE_CHECKING, Any, cast

from sqlalchemy import Insert, delete, insert, select, update
from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.exc import IntegrityError

from chargerecon.adapters.sqlalchemy.mappings import (
    charge_plugin_config_table,
    ledger_account_entity_table,
    ledger_entry_table,
)
from chargerecon.domain.model import (
    AccountRef,
    LedgerEntityType,
    LedgerEntry,
    PluginConfig,
    effective_configs,
)
from chargerecon.domain.ports import DuplicateEntryKeyError, EntryNotFoundError

if TYPE_CHECKING:
    from collections.abc import Collection

    from sqlalchemy import Row, Table
    from sqlalchemy.orm import Session

    from chargerecon.domain.charges.contracts import CreateEntry, EntryChanges


def _insert_ignoring_conflicts(session: Session, table: Table) -> Insert:
    match session.get_bind().dialect.name:
        case "sqlite":
            return sqlite.insert(table).on_conflict_do_nothing()
        case "postgresql":
            return postgresql.insert(table).on_conflict_do_nothing()
        case _:
            return insert(table)


def _account_from_row(row: Row[Any]) -> AccountRef:
    return AccountRef(
        id=row.id,
        account_id=row.account_id,
        entity_type=LedgerEntityType(row.entity_type),
        entity_id=row.entity_id,
    )


def _entry_from_row(row: Row[Any]) -> LedgerEntry:
    return LedgerEntry(
        id=row.id,
        charge_plugin=row.charge_plugin,
        charge_plugin_key=row.charge_plugin_key,
        ea_id=row.ea_id,
        amount=row.amount,
        memo=row.memo,
        reference_type=row.reference_type,
        reference_id=row.reference_id,
        date=row.date,
        data=dict(cast("dict[str, Any]", row.data or {})),
    )


def _config_from_row(row: Row[Any]) -> PluginConfig:
    return PluginConfig(
        id=row.id,
        plugin_id=row.plugin_id,
        scope=row.scope,
        employer_id=row.employer_id,
        enabled=row.enabled,
        settings=dict(cast("dict[str, Any]", row.settings or {})),
    )


class SqlAlchemyLedgerStore:
    def __init__(self, session: Session) -> None:
        self.session = session

    async def resolve_account(
        self,
        entity_type: LedgerEntityType,
        entity_id: uuid.UUID,
        account_id: uuid.UUID,
    ) -> AccountRef:
        existing = self._find_account(entity_type, entity_id, account_id)
        if existing is not None:
            return existing
        # concurrent resolvers may insert the same pairing; the unique constraint keeps one
        self.session.execute(
            _insert_ignoring_conflicts(self.session, ledger_account_entity_table).values(
                id=uuid.uuid4(),
                account_id=account_id,
                entity_type=entity_type,
                entity_id=entity_id,
            )
        )
        created = self._find_account(entity_type, entity_id, account_id)
        if created is None:
            raise RuntimeError(
                f"Account {account_id} for {entity_type} {entity_id} vanished after insert"
            )
        return created

    async def get_account(self, ea_id: uuid.UUID) -> AccountRef | None:
        stmt = select(ledger_account_entity_table).where(ledger_account_entity_table.c.id == ea_id)
        row = self.session.execute(stmt).one_or_none()
        return _account_from_row(row) if row is not None else None

    async def get_by_key(self, charge_plugin: str, key: str) -> LedgerEntry | None:
        stmt = (
            select(ledger_entry_table)
            .where(ledger_entry_table.c.charge_plugin == charge_plugin)
            .where(ledger_entry_table.c.charge_plugin_key == key)
        )
        row = self.session.execute(stmt).one_or_none()
        return _entry_from_row(row) if row is not None else None

    async def list_entries(
        self, *, charge_plugins: Collection[str] | None = None
    ) -> list[LedgerEntry]:
        stmt = select(ledger_entry_table).order_by(
            ledger_entry_table.c.charge_plugin, ledger_entry_table.c.charge_plugin_key
        )
        if charge_plugins is not None:
            stmt = stmt.where(ledger_entry_table.c.charge_plugin.in_(list(charge_plugins)))
        return [_entry_from_row(row) for row in self.session.execute(stmt)]

    async def create(self, transaction: CreateEntry) -> LedgerEntry:
        entry_id = uuid.uuid4()
        try:
            self.session.execute(
                ledger_entry_table.insert().values(
                    id=entry_id,
                    charge_plugin=transaction.charge_plugin,
                    charge_plugin_key=transaction.charge_plugin_key,
                    ea_id=transaction.ea_id,
                    amount=transaction.amount,
                    memo=transaction.description,
                    reference_type=transaction.reference_type,
                    reference_id=transaction.reference_id,
                    date=transaction.transaction_date,
                    data=dict(transaction.metadata),
                )
            )
        except IntegrityError as exc:
            raise DuplicateEntryKeyError(
                transaction.charge_plugin, transaction.charge_plugin_key
            ) from exc
        return LedgerEntry(
            id=entry_id,
            charge_plugin=transaction.charge_plugin,
            charge_plugin_key=transaction.charge_plugin_key,
            ea_id=transaction.ea_id,
            amount=transaction.amount,
            memo=transaction.description,
            reference_type=transaction.reference_type,
            reference_id=transaction.reference_id,
            date=transaction.transaction_date,
            data=dict(transaction.metadata),
        )

    async def update(self, entry_id: uuid.UUID, changes: EntryChanges) -> LedgerEntry:
        result = self.session.execute(
            update(ledger_entry_table)
            .where(ledger_entry_table.c.id == entry_id)
            .values(
                amount=changes.amount,
                memo=changes.memo,
                reference_type=changes.reference_type,
                reference_id=changes.reference_id,
                date=changes.date,
                data=dict(changes.data),
            )
        )
        if result.rowcount == 0:
            raise EntryNotFoundError(f"Ledger entry {entry_id} does not exist")
        row = self.session.execute(
            select(ledger_entry_table).where(ledger_entry_table.c.id == entry_id)
        ).one()
        return _entry_from_row(row)

    async def delete_by_key(self, charge_plugin: str, key: str) -> bool:
        result = self.session.execute(
            delete(ledger_entry_table)
            .where(ledger_entry_table.c.charge_plugin == charge_plugin)
            .where(ledger_entry_table.c.charge_plugin_key == key)
        )
        return result.rowcount > 0

    def _find_account(
        self,
        entity_type: LedgerEntityType,
        entity_id: uuid.UUID,
        account_id: uuid.UUID,
    ) -> AccountRef | None:
        stmt = (
            select(ledger_account_entity_table)
            .where(ledger_account_entity_table.c.account_id == account_id)
            .where(ledger_account_entity_table.c.entity_type == entity_type)
            .where(ledger_account_entity_table.c.entity_id == entity_id)
        )
        row = self.session.execute(stmt).one_or_none()
        return _account_from_row(row) if row is not None else None


class SqlAlchemyConfigStore:
    def __init__(self, session: Session) -> None:
        self.session = session

    async def get(self, config_id: uuid.UUID) -> PluginConfig | None:
        stmt = select(charge_plugin_config_table).where(
            charge_plugin_config_table.c.id == config_id
        )
        row = self.session.execute(stmt).one_or_none()
        return _config_from_row(row) if row is not None else None

    async def all(self) -> list[PluginConfig]:
        stmt = select(charge_plugin_config_table).order_by(
            charge_plugin_config_table.c.plugin_id, charge_plugin_config_table.c.id
        )
        return [_config_from_row(row) for row in self.session.execute(stmt)]

    async def by_plugin(self, plugin_id: str) -> list[PluginConfig]:
        stmt = (
            select(charge_plugin_config_table)
            .where(charge_plugin_config_table.c.plugin_id == plugin_id)
            .order_by(charge_plugin_config_table.c.id)
        )
        return [_config_from_row(row) for row in self.session.execute(stmt)]

    async def enabled_for_plugin(
        self, plugin_id: str, employer_id: uuid.UUID | None
    ) -> list[PluginConfig]:
        return effective_configs(await self.by_plugin(plugin_id), employer_id)

    async def add(self, config: PluginConfig) -> None:
        self.session.execute(
            charge_plugin_config_table.insert().values(
                id=config.id,
                plugin_id=config.plugin_id,
                scope=config.scope,
                employer_id=config.employer_id,
                enabled=config.enabled,
                settings=dict(config.settings),
            )
        )


if TYPE_CHECKING:
    from chargerecon.domain.ports import ConfigStore, LedgerStore

    _session_stub = cast("Session", object())
    _ledger_check: LedgerStore = SqlAlchemyLedgerStore(_session_stub)
    _config_check: ConfigStore = SqlAlchemyConfigStore(_session_stub)
