"""Fixed hourly rate charged to the employer for every worker-hours record."""

from __future__ import annotations

from decimal import Decimal
from logging import getLogger
from typing import TYPE_CHECKING, Any, Final
from uuid import UUID  # noqa: TC003

from pydantic import Field

from chargerecon.domain.charges.contracts import ExpectedEntry
from chargerecon.domain.charges.plugin import PluginMetadata
from chargerecon.domain.charges.plugins._metadata import (
    as_decimal,
    as_int,
    as_uuid,
    require_fields,
)
from chargerecon.domain.charges.reconcile import (
    AccountOwner,
    MissingMetadataError,
    execute_charge,
)
from chargerecon.domain.charges.settings import RateHistoryItem, SettingsModel, rate_entries
from chargerecon.domain.charges.settings import validate_settings as validate_schema
from chargerecon.domain.charges.verify import verify_charge
from chargerecon.domain.model import HoursSavedContext, LedgerEntityType, TriggerType
from chargerecon.domain.rates import format_money, resolve_rate, to_money

if TYPE_CHECKING:
    from collections.abc import Mapping

    from chargerecon.domain.charges.contracts import (
        ExecutionResult,
        SettingsValidation,
        VerificationResult,
    )
    from chargerecon.domain.model import AccountRef, LedgerEntry, PluginConfig, TriggerContext
    from chargerecon.domain.ports import LedgerReader

log = getLogger(__name__)

_REQUIRED_METADATA: Final[tuple[str, ...]] = (
    "worker_id",
    "employer_id",
    "year",
    "month",
    "day",
    "hours",
)


class HourlyRateItem(RateHistoryItem):
    rate: Decimal = Field(gt=0)


class HourFixedSettings(SettingsModel):
    account_id: UUID
    employment_status_ids: list[UUID] | None = None
    rate_history: list[HourlyRateItem] = Field(min_length=1)


def format_hours(hours: Decimal) -> str:
    return f"{hours.normalize():f}"


class HourFixedChargePlugin:
    metadata = PluginMetadata(
        id="hour-fixed",
        name="Hour - Fixed Rate",
        description=(
            "Charges a fixed hourly rate based on rate history whenever worker hours are saved."
        ),
        triggers=frozenset({TriggerType.HOURS_SAVED}),
        settings_schema=HourFixedSettings,
    )
    context_type = HoursSavedContext
    settings_type = HourFixedSettings

    def validate_settings(self, raw: Mapping[str, Any] | None) -> SettingsValidation:
        return validate_schema(HourFixedSettings, raw)

    def skip_reason(self, context: HoursSavedContext, settings: HourFixedSettings) -> str | None:
        return None

    def account_owner(
        self, context: HoursSavedContext, settings: HourFixedSettings
    ) -> AccountOwner:
        return AccountOwner(
            entity_type=LedgerEntityType.EMPLOYER,
            entity_id=context.employer_id,
            account_id=settings.account_id,
        )

    def natural_key(self, context: HoursSavedContext) -> tuple[object, ...]:
        return (context.hours_id,)

    def expected_entry(
        self,
        context: HoursSavedContext,
        config: PluginConfig,
        settings: HourFixedSettings,
        *,
        key: str,
        account: AccountRef,
    ) -> ExpectedEntry | None:
        if context.is_deleted:
            return None
        # an hours row whose status drops out of the filter loses its charge
        if settings.employment_status_ids is not None and (
            context.employment_status_id not in settings.employment_status_ids
        ):
            return None
        applicable = resolve_rate(rate_entries(settings.rate_history), context.work_date)
        if applicable is None:
            log.warning(
                "No applicable rate for hours:%s on %s (config %s)",
                context.hours_id,
                context.work_date,
                config.id,
            )
            return None
        amount = to_money(context.hours * applicable.rate)
        if amount == 0:
            return None

        return ExpectedEntry(
            key=key,
            amount=amount,
            description=(
                f"Hours charge: {format_hours(context.hours)} hours "
                f"@ ${format_money(applicable.rate)}/hr"
            ),
            transaction_date=context.work_date,
            account=account,
            reference_type="worker_hours",
            reference_id=str(context.hours_id),
            metadata={
                "plugin_id": self.metadata.id,
                "plugin_config_id": str(config.id),
                "worker_id": str(context.worker_id),
                "employer_id": str(context.employer_id),
                "employment_status_id": (
                    str(context.employment_status_id)
                    if context.employment_status_id is not None
                    else None
                ),
                "year": context.year,
                "month": context.month,
                "day": context.day,
                "hours": str(context.hours),
                "rate": str(applicable.rate),
                "effective_date": applicable.effective_date.isoformat(),
            },
        )

    def context_from_entry(self, entry: LedgerEntry) -> HoursSavedContext:
        data = require_fields(entry, _REQUIRED_METADATA)
        status = data.get("employment_status_id")
        try:
            return HoursSavedContext(
                hours_id=as_uuid(entry.reference_id, "reference_id"),
                worker_id=as_uuid(data["worker_id"], "worker_id"),
                employer_id=as_uuid(data["employer_id"], "employer_id"),
                year=as_int(data["year"], "year"),
                month=as_int(data["month"], "month"),
                day=as_int(data["day"], "day"),
                hours=as_decimal(data["hours"], "hours"),
                employment_status_id=(
                    as_uuid(status, "employment_status_id") if status is not None else None
                ),
            )
        except MissingMetadataError:
            raise
        except ValueError as exc:
            raise MissingMetadataError(f"Entry metadata is inconsistent: {exc}") from exc

    async def execute(
        self,
        context: TriggerContext,
        config: PluginConfig,
        *,
        ledger: LedgerReader,
    ) -> ExecutionResult:
        return await execute_charge(self, context, config, ledger=ledger)

    async def verify_entry(
        self,
        entry: LedgerEntry,
        config: PluginConfig,
        *,
        ledger: LedgerReader,
    ) -> VerificationResult:
        return await verify_charge(self, entry, config, ledger=ledger)
