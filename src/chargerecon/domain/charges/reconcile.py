"""Reconciliation driver shared by the built-in charge plugins.

One invocation computes the entry a plugin expects for an event, looks up the
entry persisted under the same deterministic key and plans the single operation
(none, create, update or delete) that makes the ledger match. Everything except
the two storage calls is a pure function of the event, the config and the stored
entry, so replaying an event against an up-to-date ledger always plans a no-op.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import StrEnum
from logging import getLogger
from typing import TYPE_CHECKING, Any, Protocol

from chargerecon.domain.charges.contracts import (
    CreateEntry,
    DeleteEntry,
    EntryChanges,
    ExecutionResult,
    Notification,
    UpdateEntry,
)
from chargerecon.domain.charges.settings import SettingsModel, parse_settings
from chargerecon.domain.model import describe_trigger
from chargerecon.domain.rates import format_signed_money

if TYPE_CHECKING:
    from collections.abc import Mapping
    from uuid import UUID

    from chargerecon.domain.charges.contracts import (
        ExpectedEntry,
        LedgerOperation,
        SettingsValidation,
    )
    from chargerecon.domain.charges.plugin import PluginMetadata
    from chargerecon.domain.model import (
        AccountRef,
        LedgerEntityType,
        LedgerEntry,
        PluginConfig,
        TriggerContext,
    )
    from chargerecon.domain.ports import LedgerReader

log = getLogger(__name__)


class MissingMetadataError(ValueError):
    """Raised when a stored entry lacks the metadata needed to rebuild its trigger."""


@dataclass(frozen=True, slots=True)
class AccountOwner:
    """Which account of which entity an expected entry books to."""

    entity_type: LedgerEntityType
    entity_id: UUID
    account_id: UUID

    def matches(self, account: AccountRef) -> bool:
        return (
            account.entity_type == self.entity_type
            and account.entity_id == self.entity_id
            and account.account_id == self.account_id
        )


class ChargeRules[TContext, TSettings: SettingsModel](Protocol):
    """Per-plugin decisions the driver delegates to.

    ``skip_reason`` short-circuits events that belong to a different logical key
    (the driver then performs no lookup at all); ``expected_entry`` returns ``None``
    when the event's own key should carry no entry.
    """

    @property
    def metadata(self) -> PluginMetadata: ...

    @property
    def context_type(self) -> type[TContext]: ...

    @property
    def settings_type(self) -> type[TSettings]: ...

    def validate_settings(self, raw: Mapping[str, Any] | None) -> SettingsValidation: ...

    def skip_reason(self, context: TContext, settings: TSettings) -> str | None: ...

    def account_owner(self, context: TContext, settings: TSettings) -> AccountOwner: ...

    def natural_key(self, context: TContext) -> tuple[object, ...]: ...

    def expected_entry(
        self,
        context: TContext,
        config: PluginConfig,
        settings: TSettings,
        *,
        key: str,
        account: AccountRef,
    ) -> ExpectedEntry | None: ...

    def context_from_entry(self, entry: LedgerEntry) -> TContext: ...


def derive_key(config_id: UUID, account_id: UUID, natural_key: tuple[object, ...]) -> str:
    """Build the deterministic key identifying the one entry a config owns for an event."""

    return ":".join(str(part) for part in (config_id, account_id, *natural_key))


class ReconcileAction(StrEnum):
    NOOP = "noop"
    CREATE = "create"
    UPDATE = "update"
    DELETE = "delete"


@dataclass(frozen=True, slots=True, kw_only=True)
class ReconciliationPlan:
    action: ReconcileAction
    message: str
    operation: LedgerOperation | None = None
    notification: Notification | None = None

    def to_result(self) -> ExecutionResult:
        if self.operation is None:
            return ExecutionResult.ok(self.message)
        notifications = (self.notification,) if self.notification is not None else ()
        return ExecutionResult.ok(
            self.message,
            transactions=(self.operation,),
            notifications=notifications,
        )


def entry_differences(expected: ExpectedEntry, existing: LedgerEntry) -> tuple[str, ...]:
    """Names of the stored fields that no longer match the expected entry."""

    checks = (
        ("amount", existing.amount != expected.amount),
        ("memo", existing.memo != expected.description),
        ("reference_type", existing.reference_type != expected.reference_type),
        ("reference_id", existing.reference_id != expected.reference_id),
        ("date", existing.date != expected.transaction_date),
    )
    return tuple(name for name, changed in checks if changed)


def plan_reconciliation(
    *,
    charge_plugin: str,
    config_id: UUID,
    key: str,
    expected: ExpectedEntry | None,
    existing: LedgerEntry | None,
) -> ReconciliationPlan:
    """Decide the minimal operation converging ``existing`` towards ``expected``."""

    if expected is None and existing is None:
        return ReconciliationPlan(action=ReconcileAction.NOOP, message="No charge applicable")

    if expected is None:
        assert existing is not None
        return ReconciliationPlan(
            action=ReconcileAction.DELETE,
            message="Deleted ledger entry - charge no longer applies",
            operation=DeleteEntry(
                charge_plugin=charge_plugin,
                charge_plugin_key=key,
                entry_id=existing.id,
                amount=existing.amount,
            ),
            notification=Notification.deleted(existing.amount),
        )

    if existing is None:
        return ReconciliationPlan(
            action=ReconcileAction.CREATE,
            message=f"Created entry for {format_signed_money(expected.amount)} - {expected.description}",
            operation=CreateEntry.from_expected(charge_plugin, config_id, expected),
            notification=Notification.created(expected.amount),
        )

    changed = entry_differences(expected, existing)
    if not changed:
        return ReconciliationPlan(
            action=ReconcileAction.NOOP,
            message="Ledger entry already matches expected state",
        )

    return ReconciliationPlan(
        action=ReconcileAction.UPDATE,
        message=f"Updated entry: {', '.join(changed)} changed",
        operation=UpdateEntry(
            entry_id=existing.id,
            charge_plugin=charge_plugin,
            charge_plugin_key=key,
            changes=EntryChanges(
                amount=expected.amount,
                memo=expected.description,
                reference_type=expected.reference_type,
                reference_id=expected.reference_id,
                date=expected.transaction_date,
                data=dict(expected.metadata),
            ),
            changed_fields=changed,
            previous_amount=existing.amount,
        ),
        notification=Notification.updated(expected.amount, existing.amount),
    )


async def execute_charge[TContext, TSettings: SettingsModel](
    rules: ChargeRules[TContext, TSettings],
    context: TriggerContext,
    config: PluginConfig,
    *,
    ledger: LedgerReader,
) -> ExecutionResult:
    """Run one reconciliation for ``rules`` and report it as an ``ExecutionResult``.

    Routing and settings problems fail before the ledger is touched. Exceptions
    raised by the ledger port are logged and returned as failed results so the
    caller can keep running other plugins.
    """

    metadata = rules.metadata
    if not metadata.accepts(context.trigger) or not isinstance(context, rules.context_type):
        accepted = ", ".join(sorted(metadata.triggers))
        return ExecutionResult.failed(
            f"{metadata.name} plugin only handles {accepted} triggers, got {context.trigger}"
        )
    if config.plugin_id != metadata.id:
        return ExecutionResult.failed(
            f"Configuration {config.id} belongs to plugin {config.plugin_id}, not {metadata.id}"
        )

    source = describe_trigger(context)
    validation = rules.validate_settings(config.settings)
    if not validation.valid:
        log.error(
            "Invalid settings for %s config %s (%s): %s",
            metadata.id,
            config.id,
            source,
            "; ".join(validation.errors),
        )
        return ExecutionResult.failed(f"Invalid plugin settings: {', '.join(validation.errors)}")
    settings = parse_settings(rules.settings_type, config.settings)

    skip = rules.skip_reason(context, settings)
    if skip is not None:
        log.debug("%s config %s skipped %s: %s", metadata.id, config.id, source, skip)
        return ExecutionResult.ok(skip)

    key: str | None = None
    try:
        owner = rules.account_owner(context, settings)
        account = await ledger.resolve_account(owner.entity_type, owner.entity_id, owner.account_id)
        key = derive_key(config.id, account.id, rules.natural_key(context))
        expected = rules.expected_entry(context, config, settings, key=key, account=account)
        existing = await ledger.get_by_key(metadata.id, key)
    except Exception as exc:  # noqa: BLE001
        log.exception(
            "%s execution failed: config=%s trigger=%s source=%s key=%s",
            metadata.id,
            config.id,
            context.trigger,
            source,
            key,
        )
        return ExecutionResult.failed(str(exc) or exc.__class__.__name__)

    plan = plan_reconciliation(
        charge_plugin=metadata.id,
        config_id=config.id,
        key=key,
        expected=expected,
        existing=existing,
    )
    if plan.action is ReconcileAction.NOOP:
        log.debug("%s %s for %s (key=%s)", metadata.id, plan.message, source, key)
    else:
        log.info(
            "%s planned %s for %s (key=%s): %s",
            metadata.id,
            plan.action,
            source,
            key,
            plan.message,
        )
    return plan.to_result()
