"""Ledger records as seen by the engine.

The ledger store owns these rows; the engine only reads them and decides which
create/update/delete operation would make them match the current facts.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date  # noqa: TC003
from decimal import Decimal  # noqa: TC003
from typing import Any
from uuid import UUID  # noqa: TC003

from chargerecon.domain.model.enums import LedgerEntityType  # noqa: TC001


@dataclass(frozen=True, slots=True, kw_only=True)
class AccountRef:
    """Entity-account pairing ("EA"): which account of which entity an entry books to."""

    id: UUID
    account_id: UUID
    entity_type: LedgerEntityType
    entity_id: UUID


@dataclass(frozen=True, slots=True, kw_only=True)
class LedgerEntry:
    """A persisted ledger entry created by a charge plugin.

    ``(charge_plugin, charge_plugin_key)`` is unique across the ledger.
    ``data`` carries the metadata the owning plugin needs to recompute the entry.
    """

    id: UUID
    charge_plugin: str
    charge_plugin_key: str
    ea_id: UUID
    amount: Decimal
    memo: str | None
    reference_type: str | None
    reference_id: str | None
    date: date
    data: dict[str, Any] = field(default_factory=dict[str, Any])
