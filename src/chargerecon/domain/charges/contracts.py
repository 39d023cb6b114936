"""Value types exchanged between charge plugins, the dispatcher and the ledger store.

Business outcomes (no-op, create, update, delete, invalid settings, storage
failure) are always reported through these objects; plugins never raise them.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from decimal import Decimal
from enum import StrEnum
from typing import TYPE_CHECKING, Any, Literal, Self

from chargerecon.domain.rates import format_signed_money

if TYPE_CHECKING:
    from datetime import date
    from uuid import UUID

    from chargerecon.domain.model import AccountRef, LedgerEntry


@dataclass(frozen=True, slots=True, kw_only=True)
class ExpectedEntry:
    """What a plugin believes should be in the ledger for one deterministic key."""

    key: str
    amount: Decimal
    description: str
    transaction_date: date
    account: AccountRef
    reference_type: str
    reference_id: str
    metadata: dict[str, Any] = field(default_factory=dict[str, Any])


@dataclass(frozen=True, slots=True, kw_only=True)
class EntryChanges:
    """New values for an existing entry."""

    amount: Decimal
    memo: str
    reference_type: str
    reference_id: str
    date: date
    data: dict[str, Any] = field(default_factory=dict[str, Any])


@dataclass(frozen=True, slots=True, kw_only=True)
class CreateEntry:
    charge_plugin: str
    charge_plugin_key: str
    config_id: UUID
    ea_id: UUID
    amount: Decimal
    description: str
    transaction_date: date
    reference_type: str
    reference_id: str
    metadata: dict[str, Any] = field(default_factory=dict[str, Any])
    op: Literal["create"] = "create"

    @classmethod
    def from_expected(cls, charge_plugin: str, config_id: UUID, expected: ExpectedEntry) -> Self:
        return cls(
            charge_plugin=charge_plugin,
            charge_plugin_key=expected.key,
            config_id=config_id,
            ea_id=expected.account.id,
            amount=expected.amount,
            description=expected.description,
            transaction_date=expected.transaction_date,
            reference_type=expected.reference_type,
            reference_id=expected.reference_id,
            metadata=dict(expected.metadata),
        )


@dataclass(frozen=True, slots=True, kw_only=True)
class UpdateEntry:
    entry_id: UUID
    charge_plugin: str
    charge_plugin_key: str
    changes: EntryChanges
    changed_fields: tuple[str, ...]
    previous_amount: Decimal
    op: Literal["update"] = "update"


@dataclass(frozen=True, slots=True, kw_only=True)
class DeleteEntry:
    charge_plugin: str
    charge_plugin_key: str
    entry_id: UUID
    amount: Decimal
    op: Literal["delete"] = "delete"


type LedgerOperation = CreateEntry | UpdateEntry | DeleteEntry


class NotificationKind(StrEnum):
    CREATED = "created"
    UPDATED = "updated"
    DELETED = "deleted"


@dataclass(frozen=True, slots=True, kw_only=True)
class Notification:
    """Human readable account of one ledger change, suitable for activity logs."""

    kind: NotificationKind
    amount: Decimal
    description: str
    previous_amount: Decimal | None = None

    @classmethod
    def created(cls, amount: Decimal) -> Self:
        return cls(
            kind=NotificationKind.CREATED,
            amount=amount,
            description=f"Ledger entry created: {format_signed_money(amount)}",
        )

    @classmethod
    def updated(cls, amount: Decimal, previous_amount: Decimal) -> Self:
        if previous_amount != amount:
            before, after = format_signed_money(previous_amount), format_signed_money(amount)
            description = f"Ledger entry updated: {before} → {after}"
        else:
            description = f"Ledger entry updated: {format_signed_money(amount)}"
        return cls(
            kind=NotificationKind.UPDATED,
            amount=amount,
            previous_amount=previous_amount,
            description=description,
        )

    @classmethod
    def deleted(cls, amount: Decimal) -> Self:
        return cls(
            kind=NotificationKind.DELETED,
            amount=amount,
            description=f"Ledger entry deleted: {format_signed_money(-amount)}",
        )


@dataclass(frozen=True, slots=True, kw_only=True)
class ExecutionResult:
    """Outcome of one plugin invocation.

    ``transactions`` lists the ledger operations the caller must apply to converge
    the ledger; it is empty for no-ops and failures.
    """

    success: bool
    transactions: tuple[LedgerOperation, ...] = ()
    notifications: tuple[Notification, ...] = ()
    message: str | None = None
    error: str | None = None

    @classmethod
    def ok(
        cls,
        message: str | None = None,
        *,
        transactions: tuple[LedgerOperation, ...] = (),
        notifications: tuple[Notification, ...] = (),
    ) -> Self:
        return cls(
            success=True,
            transactions=transactions,
            notifications=notifications,
            message=message,
        )

    @classmethod
    def failed(cls, error: str) -> Self:
        return cls(success=False, error=error)

    @property
    def is_noop(self) -> bool:
        return self.success and not self.transactions


@dataclass(frozen=True, slots=True)
class SettingsValidation:
    valid: bool
    errors: tuple[str, ...] = ()

    @classmethod
    def ok(cls) -> Self:
        return cls(valid=True)

    @classmethod
    def invalid(cls, errors: tuple[str, ...]) -> Self:
        return cls(valid=False, errors=errors)


@dataclass(frozen=True, slots=True, kw_only=True)
class VerificationResult:
    """Audit verdict for one persisted entry."""

    entry_id: UUID
    charge_plugin: str
    charge_plugin_key: str
    is_valid: bool
    actual_amount: Decimal
    actual_description: str | None
    reference_type: str | None
    reference_id: str | None
    transaction_date: date
    expected_amount: Decimal | None = None
    expected_description: str | None = None
    discrepancies: tuple[str, ...] = ()

    @classmethod
    def for_entry(cls, entry: LedgerEntry) -> Self:
        """Start from a passing verdict that mirrors the stored entry."""
        return cls(
            entry_id=entry.id,
            charge_plugin=entry.charge_plugin,
            charge_plugin_key=entry.charge_plugin_key,
            is_valid=True,
            actual_amount=entry.amount,
            actual_description=entry.memo,
            reference_type=entry.reference_type,
            reference_id=entry.reference_id,
            transaction_date=entry.date,
        )


ZERO_AMOUNT = Decimal("0.00")
