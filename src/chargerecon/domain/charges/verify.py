"""Read-only drift audit of plugin-owned ledger entries.

Each entry is recomputed from its own stored metadata, never from live source
records, so a discrepancy means the plugin configuration (rates, memo template,
target account) changed after the entry was written.
"""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from decimal import Decimal
from logging import getLogger
from typing import TYPE_CHECKING

from chargerecon.domain.charges.contracts import ZERO_AMOUNT, VerificationResult
from chargerecon.domain.charges.reconcile import MissingMetadataError, derive_key
from chargerecon.domain.charges.settings import SettingsModel, parse_settings
from chargerecon.domain.rates import format_money

if TYPE_CHECKING:
    from collections.abc import Iterable, Sequence

    from chargerecon.domain.charges.reconcile import ChargeRules
    from chargerecon.domain.charges.registry import PluginRegistry
    from chargerecon.domain.model import LedgerEntry, PluginConfig
    from chargerecon.domain.ports import LedgerReader

log = getLogger(__name__)


async def verify_charge[TContext, TSettings: SettingsModel](
    rules: ChargeRules[TContext, TSettings],
    entry: LedgerEntry,
    config: PluginConfig,
    *,
    ledger: LedgerReader,
) -> VerificationResult:
    """Compare ``entry`` with what ``rules`` would produce for it today."""

    base = VerificationResult.for_entry(entry)

    def invalid(*discrepancies: str, expected_amount: Decimal | None = None) -> VerificationResult:
        return replace(
            base,
            is_valid=False,
            discrepancies=discrepancies,
            expected_amount=expected_amount,
        )

    validation = rules.validate_settings(config.settings)
    if not validation.valid:
        return invalid(f"Invalid plugin configuration: {', '.join(validation.errors)}")
    if entry.charge_plugin != rules.metadata.id:
        return invalid(f"Entry belongs to plugin {entry.charge_plugin}, not {rules.metadata.id}")

    try:
        settings = parse_settings(rules.settings_type, config.settings)
        context = rules.context_from_entry(entry)
    except MissingMetadataError as exc:
        return invalid(str(exc))

    try:
        account = await ledger.get_account(entry.ea_id)
    except Exception as exc:  # noqa: BLE001
        log.exception("Could not load account %s for entry %s", entry.ea_id, entry.id)
        return invalid(f"Verification error: {exc}")
    if account is None:
        return invalid(f"Entry references unknown account {entry.ea_id}")

    discrepancies: list[str] = []
    expected = None
    if rules.skip_reason(context, settings) is None:
        owner = rules.account_owner(context, settings)
        if not owner.matches(account):
            discrepancies.append(
                f"Account mismatch: expected account {owner.account_id} for "
                f"{owner.entity_type} {owner.entity_id}, found account {account.account_id} "
                f"for {account.entity_type} {account.entity_id}"
            )
        key = derive_key(config.id, account.id, rules.natural_key(context))
        if key != entry.charge_plugin_key:
            discrepancies.append(f"Key mismatch: expected {key}, found {entry.charge_plugin_key}")
        expected = rules.expected_entry(context, config, settings, key=key, account=account)

    if expected is None:
        return invalid(
            "Entry exists but no longer qualifies - entry should be deleted",
            expected_amount=ZERO_AMOUNT,
        )

    if entry.amount != expected.amount:
        discrepancies.append(
            f"Amount mismatch: expected {format_money(expected.amount)}, "
            f"found {format_money(entry.amount)}"
        )
    if entry.memo != expected.description:
        discrepancies.append(
            f'Description mismatch: expected "{expected.description}", found "{entry.memo}"'
        )

    return replace(
        base,
        is_valid=not discrepancies,
        expected_amount=expected.amount,
        expected_description=expected.description,
        discrepancies=tuple(discrepancies),
    )


async def verify_entries(
    registry: PluginRegistry,
    plugin_id: str,
    entries: Iterable[LedgerEntry],
    config: PluginConfig,
    *,
    ledger: LedgerReader,
) -> list[VerificationResult]:
    """Verify a batch of entries that all belong to ``config`` of ``plugin_id``."""

    plugin = registry.get(plugin_id)
    if plugin is None:
        return [
            _unverifiable(entry, f"Unknown charge plugin: {plugin_id}") for entry in entries
        ]
    return [await plugin.verify_entry(entry, config, ledger=ledger) for entry in entries]


@dataclass(slots=True)
class AuditReport:
    """Verdicts for every audited entry."""

    results: list[VerificationResult] = field(default_factory=list["VerificationResult"])

    @property
    def checked(self) -> int:
        return len(self.results)

    @property
    def invalid(self) -> list[VerificationResult]:
        return [result for result in self.results if not result.is_valid]

    @property
    def valid_count(self) -> int:
        return self.checked - len(self.invalid)


async def audit_ledger(
    registry: PluginRegistry,
    entries: Iterable[LedgerEntry],
    configs: Sequence[PluginConfig],
    *,
    ledger: LedgerReader,
) -> AuditReport:
    """Verify plugin entries against whichever config their key was derived from.

    Configs are matched through the ``"<config id>:"`` prefix every deterministic
    key starts with. Entries whose plugin or config disappeared are reported, not
    skipped.
    """

    report = AuditReport()
    for entry in entries:
        plugin = registry.get(entry.charge_plugin)
        if plugin is None:
            report.results.append(
                _unverifiable(entry, f"Unknown charge plugin: {entry.charge_plugin}")
            )
            continue
        config = next(
            (
                candidate
                for candidate in configs
                if candidate.plugin_id == entry.charge_plugin
                and entry.charge_plugin_key.startswith(candidate.key_prefix)
            ),
            None,
        )
        if config is None:
            report.results.append(
                _unverifiable(entry, "No matching plugin configuration found for entry")
            )
            continue
        try:
            result = await plugin.verify_entry(entry, config, ledger=ledger)
        except Exception as exc:  # noqa: BLE001
            log.exception("Verification of entry %s raised", entry.id)
            result = _unverifiable(entry, f"Verification error: {exc}")
        report.results.append(result)

    log.info(
        "Ledger audit finished: checked=%s, valid=%s, invalid=%s",
        report.checked,
        report.valid_count,
        len(report.invalid),
    )
    return report


def _unverifiable(entry: LedgerEntry, reason: str) -> VerificationResult:
    return replace(VerificationResult.for_entry(entry), is_valid=False, discrepancies=(reason,))
