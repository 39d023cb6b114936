"""Effective-dated rate lookup and calendar helpers for monthly charges."""

from __future__ import annotations

import calendar
from dataclasses import dataclass
from datetime import date
from decimal import ROUND_HALF_UP, Decimal
from typing import TYPE_CHECKING, Final

if TYPE_CHECKING:
    from collections.abc import Iterable

CENT: Final[Decimal] = Decimal("0.01")

_MONTH_NAMES: Final[tuple[str, ...]] = (
    "",
    "January",
    "February",
    "March",
    "April",
    "May",
    "June",
    "July",
    "August",
    "September",
    "October",
    "November",
    "December",
)


@dataclass(frozen=True, slots=True)
class RateHistoryEntry:
    """A rate that applies from ``effective_date`` until the next entry takes over."""

    effective_date: date
    rate: Decimal


def resolve_rate(history: Iterable[RateHistoryEntry], as_of: date) -> RateHistoryEntry | None:
    """Return the entry in force on ``as_of``, or ``None`` when nothing applies yet.

    The history does not need to be sorted. When two entries share an effective
    date the one appearing later in ``history`` wins, so appending a correction for
    an existing date overrides the earlier value.

    A zero rate is returned like any other entry; callers decide whether "no
    charge this period" differs from "no rate found".
    """

    selected: RateHistoryEntry | None = None
    for entry in history:
        if entry.effective_date > as_of:
            continue
        if selected is None or entry.effective_date >= selected.effective_date:
            selected = entry
    return selected


def to_money(value: Decimal) -> Decimal:
    """Quantize an amount to cents."""

    return value.quantize(CENT, rounding=ROUND_HALF_UP)


def format_money(value: Decimal) -> str:
    return f"{to_money(value):.2f}"


def format_signed_money(value: Decimal) -> str:
    """Dollar amount with the sign ahead of the symbol, e.g. ``"-$250.00"``."""

    amount = to_money(value)
    sign = "-" if amount < 0 else ""
    return f"{sign}${abs(amount):.2f}"


def month_start(year: int, month: int) -> date:
    return date(year, month, 1)


def month_end(year: int, month: int) -> date:
    return date(year, month, calendar.monthrange(year, month)[1])


def month_name(month: int) -> str:
    """English month name, independent of the process locale."""

    return _MONTH_NAMES[month]


def month_label(year: int, month: int) -> str:
    """Human readable period such as ``"March 2024"``."""

    return f"{month_name(month)} {year}"


__all__ = [
    "CENT",
    "RateHistoryEntry",
    "format_money",
    "format_signed_money",
    "month_end",
    "month_label",
    "month_name",
    "month_start",
    "resolve_rate",
    "to_money",
]
