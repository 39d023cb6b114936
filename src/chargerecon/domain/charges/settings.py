"""Settings schemas shared by charge plugins and the validate-before-execute glue."""

from __future__ import annotations

import re
from datetime import date
from decimal import Decimal
from string import Formatter
from typing import TYPE_CHECKING, Annotated, Any, Final

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from chargerecon.domain.charges.contracts import SettingsValidation
from chargerecon.domain.rates import RateHistoryEntry

if TYPE_CHECKING:
    from collections.abc import Iterable, Mapping

_ISO_DATE: Final[re.Pattern[str]] = re.compile(r"^\d{4}-\d{2}-\d{2}$")


class SettingsModel(BaseModel):
    model_config = ConfigDict(extra="forbid", frozen=True)


class RateHistoryItem(SettingsModel):
    effective_date: date
    rate: Decimal = Field(ge=0)

    @field_validator("effective_date", mode="before")
    @classmethod
    def _require_iso_date(cls, value: object) -> object:
        if isinstance(value, date):
            return value
        if isinstance(value, str) and _ISO_DATE.match(value):
            return value
        raise ValueError("Date must be in YYYY-MM-DD format")

    def to_entry(self) -> RateHistoryEntry:
        return RateHistoryEntry(effective_date=self.effective_date, rate=self.rate)


RateHistory = Annotated[
    list[RateHistoryItem], Field(min_length=1, description="At least one rate entry is required")
]


def rate_entries(items: Iterable[RateHistoryItem]) -> tuple[RateHistoryEntry, ...]:
    """Convert validated settings items into resolver entries, keeping input order."""

    return tuple(item.to_entry() for item in items)


def template_fields(template: str) -> set[str]:
    """Return the placeholder names used by a ``str.format`` template."""

    return {name for _, name, _, _ in Formatter().parse(template) if name is not None}


def validate_settings(schema: type[SettingsModel], raw: Mapping[str, Any] | None) -> SettingsValidation:
    """Check ``raw`` against ``schema`` and flatten failures into readable strings."""

    try:
        schema.model_validate(raw if raw is not None else {})
    except ValidationError as exc:
        return SettingsValidation.invalid(tuple(_format_error(error) for error in exc.errors()))
    return SettingsValidation.ok()


def parse_settings[TSettings: SettingsModel](
    schema: type[TSettings], raw: Mapping[str, Any] | None
) -> TSettings:
    """Return the typed settings; only call after ``validate_settings`` succeeded."""

    return schema.model_validate(raw if raw is not None else {})


def _format_error(error: Mapping[str, Any]) -> str:
    location = ".".join(str(part) for part in error.get("loc", ()))
    message = str(error.get("msg", "invalid value"))
    message = message.removeprefix("Value error, ")
    return f"{location}: {message}" if location else message
