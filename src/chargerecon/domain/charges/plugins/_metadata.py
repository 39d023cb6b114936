"""Helpers for reading the metadata bag stored on plugin-owned entries."""

from __future__ import annotations

from datetime import date
from decimal import Decimal, InvalidOperation
from typing import TYPE_CHECKING, Any
from uuid import UUID

from chargerecon.domain.charges.reconcile import MissingMetadataError

if TYPE_CHECKING:
    from collections.abc import Mapping

    from chargerecon.domain.model import LedgerEntry


def require_fields(entry: LedgerEntry, names: tuple[str, ...]) -> Mapping[str, Any]:
    """Return ``entry.data`` after checking every name in ``names`` carries a value."""

    if not entry.reference_id:
        raise MissingMetadataError("Entry has no reference_id - cannot verify")
    data = entry.data or {}
    if any(data.get(name) in (None, "") for name in names):
        raise MissingMetadataError(f"Entry missing required metadata ({', '.join(names)})")
    return data


def as_uuid(value: object, name: str) -> UUID:
    try:
        return value if isinstance(value, UUID) else UUID(str(value))
    except ValueError as exc:
        raise MissingMetadataError(f"Entry metadata {name} is not a valid UUID: {value}") from exc


def as_int(value: object, name: str) -> int:
    try:
        return int(str(value))
    except ValueError as exc:
        raise MissingMetadataError(f"Entry metadata {name} is not an integer: {value}") from exc


def as_decimal(value: object, name: str) -> Decimal:
    try:
        return Decimal(str(value))
    except InvalidOperation as exc:
        raise MissingMetadataError(f"Entry metadata {name} is not a number: {value}") from exc


def as_date(value: object, name: str) -> date:
    try:
        return date.fromisoformat(str(value))
    except ValueError as exc:
        raise MissingMetadataError(f"Entry metadata {name} is not a date: {value}") from exc
