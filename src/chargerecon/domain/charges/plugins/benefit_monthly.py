"""Flat monthly charge for workers holding a configured benefit."""

from __future__ import annotations

from logging import getLogger
from typing import TYPE_CHECKING, Any, Final
from uuid import UUID  # noqa: TC003

from pydantic import Field, field_validator

from chargerecon.domain.charges.contracts import ExpectedEntry
from chargerecon.domain.charges.plugin import PluginMetadata
from chargerecon.domain.charges.plugins._metadata import as_int, as_uuid, require_fields
from chargerecon.domain.charges.reconcile import (
    AccountOwner,
    MissingMetadataError,
    execute_charge,
)
from chargerecon.domain.charges.settings import (
    RateHistory,
    SettingsModel,
    rate_entries,
    template_fields,
)
from chargerecon.domain.charges.settings import validate_settings as validate_schema
from chargerecon.domain.charges.verify import verify_charge
from chargerecon.domain.model import BenefitSavedContext, LedgerEntityType, TriggerType
from chargerecon.domain.rates import (
    month_end,
    month_label,
    month_name,
    month_start,
    resolve_rate,
    to_money,
)

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

MEMO_FIELDS: Final[frozenset[str]] = frozenset({"label", "period", "month_name", "year", "month"})
_SAMPLE_MEMO_VALUES: Final[dict[str, object]] = {
    "label": "Benefit charge",
    "period": "March 2024",
    "month_name": "March",
    "year": 2024,
    "month": 3,
}
_REQUIRED_METADATA: Final[tuple[str, ...]] = (
    "worker_id",
    "employer_id",
    "benefit_id",
    "year",
    "month",
)


class MonthlyBenefitSettings(SettingsModel):
    account_id: UUID
    benefit_id: UUID
    rate_history: RateHistory
    label: str = Field(default="Benefit charge", min_length=1)
    memo_template: str = "{label}: {period}"

    @field_validator("memo_template")
    @classmethod
    def _known_placeholders(cls, value: str) -> str:
        unknown = template_fields(value) - MEMO_FIELDS
        if unknown:
            raise ValueError(
                f"Unknown placeholder(s) {', '.join(sorted(unknown))}; "
                f"allowed: {', '.join(sorted(MEMO_FIELDS))}"
            )
        try:
            value.format(**_SAMPLE_MEMO_VALUES)
        except (ValueError, KeyError, IndexError, AttributeError, TypeError) as exc:
            raise ValueError(f"Template cannot be rendered: {exc}") from exc
        return value


class MonthlyBenefitChargePlugin:
    """One entry per worker and month while the worker holds the configured benefit.

    The entry books to the employer's account, is dated on the last day of the
    month and uses the rate in force on the first day of the month.
    """

    metadata = PluginMetadata(
        id="benefit-monthly",
        name="Monthly Benefit Charge",
        description=(
            "Charges a monthly rate for a benefit when a worker has the configured "
            "benefit in a given month."
        ),
        triggers=frozenset({TriggerType.WMB_SAVED}),
        settings_schema=MonthlyBenefitSettings,
        required_component="benefits",
    )
    context_type = BenefitSavedContext
    settings_type = MonthlyBenefitSettings

    def validate_settings(self, raw: Mapping[str, Any] | None) -> SettingsValidation:
        return validate_schema(MonthlyBenefitSettings, raw)

    def skip_reason(
        self, context: BenefitSavedContext, settings: MonthlyBenefitSettings
    ) -> str | None:
        if context.benefit_id != settings.benefit_id:
            return "WMB benefit does not match configured benefit"
        return None

    def account_owner(
        self, context: BenefitSavedContext, settings: MonthlyBenefitSettings
    ) -> AccountOwner:
        return AccountOwner(
            entity_type=LedgerEntityType.EMPLOYER,
            entity_id=context.employer_id,
            account_id=settings.account_id,
        )

    def natural_key(self, context: BenefitSavedContext) -> tuple[object, ...]:
        return (context.worker_id, context.year, context.month)

    def expected_entry(
        self,
        context: BenefitSavedContext,
        config: PluginConfig,
        settings: MonthlyBenefitSettings,
        *,
        key: str,
        account: AccountRef,
    ) -> ExpectedEntry | None:
        if context.is_deleted:
            return None
        applicable = resolve_rate(
            rate_entries(settings.rate_history), month_start(context.year, context.month)
        )
        if applicable is None:
            log.debug(
                "No rate in force for %s-%02d (wmb:%s)", context.year, context.month, context.wmb_id
            )
            return None
        if applicable.rate == 0:
            return None

        period = month_label(context.year, context.month)
        description = settings.memo_template.format(
            label=settings.label,
            period=period,
            month_name=month_name(context.month),
            year=context.year,
            month=context.month,
        )
        return ExpectedEntry(
            key=key,
            amount=to_money(applicable.rate),
            description=description,
            transaction_date=month_end(context.year, context.month),
            account=account,
            reference_type="wmb",
            reference_id=str(context.wmb_id),
            metadata={
                "plugin_id": self.metadata.id,
                "plugin_config_id": str(config.id),
                "worker_id": str(context.worker_id),
                "employer_id": str(context.employer_id),
                "benefit_id": str(context.benefit_id),
                "year": context.year,
                "month": context.month,
                "rate": str(applicable.rate),
                "effective_date": applicable.effective_date.isoformat(),
            },
        )

    def context_from_entry(self, entry: LedgerEntry) -> BenefitSavedContext:
        data = require_fields(entry, _REQUIRED_METADATA)
        try:
            return BenefitSavedContext(
                wmb_id=as_uuid(entry.reference_id, "reference_id"),
                worker_id=as_uuid(data["worker_id"], "worker_id"),
                employer_id=as_uuid(data["employer_id"], "employer_id"),
                benefit_id=as_uuid(data["benefit_id"], "benefit_id"),
                year=as_int(data["year"], "year"),
                month=as_int(data["month"], "month"),
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
