"""Ports for the ledger and plugin-configuration stores.

Every method is a suspension point: callers must not assume two calls complete
atomically with each other.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Protocol, runtime_checkable

from chargerecon.domain.errors import ChargeError

if TYPE_CHECKING:
    from collections.abc import Collection
    from uuid import UUID

    from chargerecon.domain.charges.contracts import CreateEntry, EntryChanges
    from chargerecon.domain.model import (
        AccountRef,
        LedgerEntityType,
        LedgerEntry,
        PluginConfig,
    )


class DuplicateEntryKeyError(ChargeError):
    """Raised by ``LedgerStore.create`` when ``(plugin, key)`` already has an entry."""

    def __init__(self, charge_plugin: str, charge_plugin_key: str) -> None:
        super().__init__(
            f"Ledger entry already exists for {charge_plugin} key {charge_plugin_key}"
        )
        self.charge_plugin = charge_plugin
        self.charge_plugin_key = charge_plugin_key


class EntryNotFoundError(ChargeError, LookupError):
    """Raised by ``LedgerStore.update`` when the entry no longer exists."""


@runtime_checkable
class LedgerReader(Protocol):
    """Read side of the ledger plus the account get-or-create helper."""

    async def resolve_account(
        self,
        entity_type: LedgerEntityType,
        entity_id: UUID,
        account_id: UUID,
    ) -> AccountRef: ...

    async def get_account(self, ea_id: UUID) -> AccountRef | None: ...

    async def get_by_key(self, charge_plugin: str, key: str) -> LedgerEntry | None: ...


@runtime_checkable
class LedgerStore(LedgerReader, Protocol):
    """Persistence contract for plugin-owned ledger entries."""

    async def list_entries(
        self, *, charge_plugins: Collection[str] | None = None
    ) -> list[LedgerEntry]: ...

    async def create(self, transaction: CreateEntry) -> LedgerEntry: ...

    async def update(self, entry_id: UUID, changes: EntryChanges) -> LedgerEntry: ...

    async def delete_by_key(self, charge_plugin: str, key: str) -> bool: ...


@runtime_checkable
class ConfigStore(Protocol):
    """Read access to administrator-managed plugin configurations."""

    async def get(self, config_id: UUID) -> PluginConfig | None: ...

    async def all(self) -> list[PluginConfig]: ...

    async def by_plugin(self, plugin_id: str) -> list[PluginConfig]: ...

    async def enabled_for_plugin(
        self, plugin_id: str, employer_id: UUID | None
    ) -> list[PluginConfig]:
        """Enabled configs for ``plugin_id``; an employer config replaces the global one."""
        ...

    async def add(self, config: PluginConfig) -> None: ...
