"""Trigger contexts: immutable descriptions of the events charge plugins react to.

``TriggerContext`` is a closed union discriminated by ``trigger``. Code that needs
per-kind behaviour matches on the concrete class and ends with ``assert_never`` so
a new trigger kind cannot be added without visiting every match site.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date
from decimal import Decimal
from typing import Literal, assert_never
from uuid import UUID

from chargerecon.domain.model.enums import LedgerEntityType, TriggerType


@dataclass(frozen=True, slots=True, kw_only=True)
class HoursSavedContext:
    """A worker-hours row was created, edited or removed."""

    hours_id: UUID
    worker_id: UUID
    employer_id: UUID
    year: int
    month: int
    day: int
    hours: Decimal
    employment_status_id: UUID | None = None
    is_deleted: bool = False
    trigger: Literal[TriggerType.HOURS_SAVED] = TriggerType.HOURS_SAVED

    def __post_init__(self) -> None:
        _check_month(self.month)
        # raises for impossible days such as 2024-02-30
        date(self.year, self.month, self.day)

    @property
    def work_date(self) -> date:
        return date(self.year, self.month, self.day)


@dataclass(frozen=True, slots=True, kw_only=True)
class BenefitSavedContext:
    """A worker monthly benefit (WMB) record was saved or removed."""

    wmb_id: UUID
    worker_id: UUID
    employer_id: UUID
    benefit_id: UUID
    year: int
    month: int
    is_deleted: bool = False
    trigger: Literal[TriggerType.WMB_SAVED] = TriggerType.WMB_SAVED

    def __post_init__(self) -> None:
        _check_month(self.month)


@dataclass(frozen=True, slots=True, kw_only=True)
class PaymentSavedContext:
    """A ledger payment was saved; ``amount`` is the positive amount received."""

    payment_id: UUID
    amount: Decimal
    status: str
    account_id: UUID
    entity_type: LedgerEntityType
    entity_id: UUID
    date_cleared: date | None = None
    memo: str | None = None
    trigger: Literal[TriggerType.PAYMENT_SAVED] = TriggerType.PAYMENT_SAVED


type TriggerContext = HoursSavedContext | BenefitSavedContext | PaymentSavedContext


def employer_of(context: TriggerContext) -> UUID | None:
    """Return the employer an event is bound to, used for employer-scoped configs."""

    match context:
        case HoursSavedContext() | BenefitSavedContext():
            return context.employer_id
        case PaymentSavedContext():
            if context.entity_type is LedgerEntityType.EMPLOYER:
                return context.entity_id
            return None
        case _:
            assert_never(context)


def describe_trigger(context: TriggerContext) -> str:
    """Short identifier of the source record, for log lines."""

    match context:
        case HoursSavedContext():
            return f"hours:{context.hours_id}"
        case BenefitSavedContext():
            return f"wmb:{context.wmb_id}"
        case PaymentSavedContext():
            return f"payment:{context.payment_id}"
        case _:
            assert_never(context)


def _check_month(month: int) -> None:
    if not 1 <= month <= 12:
        raise ValueError(f"Month must be between 1 and 12, got {month}")
