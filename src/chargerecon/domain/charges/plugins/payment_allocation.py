"""Allocates cleared payments on configured accounts against the paying entity."""

from __future__ import annotations

from typing import TYPE_CHECKING, Any, Final
from uuid import UUID  # noqa: TC003

from pydantic import Field

from chargerecon.domain.charges.contracts import ExpectedEntry
from chargerecon.domain.charges.plugin import PluginMetadata
from chargerecon.domain.charges.plugins._metadata import (
    as_date,
    as_decimal,
    as_uuid,
    require_fields,
)
from chargerecon.domain.charges.reconcile import (
    AccountOwner,
    MissingMetadataError,
    execute_charge,
)
from chargerecon.domain.charges.settings import SettingsModel
from chargerecon.domain.charges.settings import validate_settings as validate_schema
from chargerecon.domain.charges.verify import verify_charge
from chargerecon.domain.model import LedgerEntityType, PaymentSavedContext, TriggerType
from chargerecon.domain.rates import to_money

if TYPE_CHECKING:
    from collections.abc import Mapping

    from chargerecon.domain.charges.contracts import (
        ExecutionResult,
        SettingsValidation,
        VerificationResult,
    )
    from chargerecon.domain.model import AccountRef, LedgerEntry, PluginConfig, TriggerContext
    from chargerecon.domain.ports import LedgerReader

CLEARED: Final[str] = "cleared"
_REQUIRED_METADATA: Final[tuple[str, ...]] = (
    "account_id",
    "entity_type",
    "entity_id",
    "original_amount",
    "status",
    "date_cleared",
)


class PaymentAllocationSettings(SettingsModel):
    account_ids: list[UUID] = Field(min_length=1)


class PaymentAllocationPlugin:
    metadata = PluginMetadata(
        id="payment-simple-allocation",
        name="Payment Simple Allocation",
        description=(
            "Creates ledger entries when payments are saved. Only applies to payments on "
            "configured accounts."
        ),
        triggers=frozenset({TriggerType.PAYMENT_SAVED}),
        settings_schema=PaymentAllocationSettings,
    )
    context_type = PaymentSavedContext
    settings_type = PaymentAllocationSettings

    def validate_settings(self, raw: Mapping[str, Any] | None) -> SettingsValidation:
        return validate_schema(PaymentAllocationSettings, raw)

    def skip_reason(
        self, context: PaymentSavedContext, settings: PaymentAllocationSettings
    ) -> str | None:
        if context.account_id not in settings.account_ids:
            return "Payment account not in configured list"
        return None

    def account_owner(
        self, context: PaymentSavedContext, settings: PaymentAllocationSettings
    ) -> AccountOwner:
        return AccountOwner(
            entity_type=context.entity_type,
            entity_id=context.entity_id,
            account_id=context.account_id,
        )

    def natural_key(self, context: PaymentSavedContext) -> tuple[object, ...]:
        return (context.payment_id,)

    def expected_entry(
        self,
        context: PaymentSavedContext,
        config: PluginConfig,
        settings: PaymentAllocationSettings,
        *,
        key: str,
        account: AccountRef,
    ) -> ExpectedEntry | None:
        """Only cleared payments carry an allocation, dated on the day they cleared."""

        if context.status != CLEARED or context.date_cleared is None:
            return None
        description = (
            f"Payment allocation: {context.memo}" if context.memo else "Payment allocation"
        )
        return ExpectedEntry(
            key=key,
            amount=-to_money(context.amount),
            description=description,
            transaction_date=context.date_cleared,
            account=account,
            reference_type="payment",
            reference_id=str(context.payment_id),
            metadata={
                "plugin_id": self.metadata.id,
                "plugin_config_id": str(config.id),
                "payment_id": str(context.payment_id),
                "account_id": str(context.account_id),
                "entity_type": str(context.entity_type),
                "entity_id": str(context.entity_id),
                "original_amount": str(context.amount),
                "status": context.status,
                "date_cleared": context.date_cleared.isoformat(),
                "memo": context.memo,
            },
        )

    def context_from_entry(self, entry: LedgerEntry) -> PaymentSavedContext:
        data = require_fields(entry, _REQUIRED_METADATA)
        try:
            return PaymentSavedContext(
                payment_id=as_uuid(entry.reference_id, "reference_id"),
                amount=as_decimal(data["original_amount"], "original_amount"),
                status=str(data["status"]),
                account_id=as_uuid(data["account_id"], "account_id"),
                entity_type=LedgerEntityType(data["entity_type"]),
                entity_id=as_uuid(data["entity_id"], "entity_id"),
                date_cleared=as_date(data["date_cleared"], "date_cleared"),
                memo=data.get("memo"),
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
