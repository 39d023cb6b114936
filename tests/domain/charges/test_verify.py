from __future__ import annotations

import asyncio
import uuid
from dataclasses import replace
from decimal import Decimal
from typing import TYPE_CHECKING

import pytest

from chargerecon.domain.charges import apply_operations, audit_ledger, verify_entries
from chargerecon.domain.charges.plugins import MonthlyBenefitChargePlugin
from tests.support.charges import (
    OTHER_BENEFIT_ID,
    InMemoryLedgerStore,
    benefit_settings,
    make_config,
    make_wmb,
)

if TYPE_CHECKING:
    from chargerecon.domain.charges import PluginRegistry, VerificationResult
    from chargerecon.domain.model import LedgerEntry, PluginConfig

PLUGIN = MonthlyBenefitChargePlugin()


@pytest.fixture
def config() -> PluginConfig:
    return make_config(PLUGIN.metadata.id, benefit_settings())


@pytest.fixture
def entry(ledger: InMemoryLedgerStore, config: PluginConfig) -> LedgerEntry:
    async def scenario() -> None:
        result = await PLUGIN.execute(make_wmb(), config, ledger=ledger)
        await apply_operations(ledger, result.transactions)

    asyncio.run(scenario())
    (created,) = ledger.entries.values()
    return created


def _verify(
    ledger: InMemoryLedgerStore, entry: LedgerEntry, config: PluginConfig
) -> VerificationResult:
    return asyncio.run(PLUGIN.verify_entry(entry, config, ledger=ledger))


def _with_settings(config: PluginConfig, **overrides: object) -> PluginConfig:
    return replace(config, settings=benefit_settings(**overrides))


def test_untouched_entry_is_valid(
    ledger: InMemoryLedgerStore, entry: LedgerEntry, config: PluginConfig
) -> None:
    result = _verify(ledger, entry, config)

    assert result.is_valid
    assert result.discrepancies == ()
    assert result.expected_amount == Decimal("15.00")
    assert result.expected_description == entry.memo


def test_rate_change_shows_amount_drift(
    ledger: InMemoryLedgerStore, entry: LedgerEntry, config: PluginConfig
) -> None:
    changed = _with_settings(
        config,
        rate_history=[
            {"effective_date": "2024-01-01", "rate": "15.00"},
            {"effective_date": "2024-03-01", "rate": "18.50"},
        ],
    )

    result = _verify(ledger, entry, changed)

    assert not result.is_valid
    assert result.discrepancies == ("Amount mismatch: expected 18.50, found 15.00",)
    assert result.expected_amount == Decimal("18.50")
    assert result.actual_amount == Decimal("15.00")


def test_memo_template_change_shows_description_drift(
    ledger: InMemoryLedgerStore, entry: LedgerEntry, config: PluginConfig
) -> None:
    result = _verify(ledger, entry, _with_settings(config, label="Health"))

    assert result.discrepancies == (
        'Description mismatch: expected "Health: March 2024", '
        'found "Benefit charge: March 2024"',
    )


def test_entry_for_another_benefit_should_be_deleted(
    ledger: InMemoryLedgerStore, entry: LedgerEntry, config: PluginConfig
) -> None:
    result = _verify(ledger, entry, _with_settings(config, benefit_id=str(OTHER_BENEFIT_ID)))

    assert not result.is_valid
    assert result.discrepancies == (
        "Entry exists but no longer qualifies - entry should be deleted",
    )
    assert result.expected_amount == Decimal("0.00")


def test_entry_without_metadata_cannot_be_verified(
    ledger: InMemoryLedgerStore, entry: LedgerEntry, config: PluginConfig
) -> None:
    result = _verify(ledger, replace(entry, data={"year": 2024}), config)

    assert not result.is_valid
    assert result.discrepancies[0].startswith("Entry missing required metadata (")


def test_entry_without_reference_cannot_be_verified(
    ledger: InMemoryLedgerStore, entry: LedgerEntry, config: PluginConfig
) -> None:
    result = _verify(ledger, replace(entry, reference_id=None), config)

    assert result.discrepancies == ("Entry has no reference_id - cannot verify",)


def test_entry_with_unknown_account_is_reported(
    ledger: InMemoryLedgerStore, entry: LedgerEntry, config: PluginConfig
) -> None:
    ledger.accounts.clear()

    result = _verify(ledger, entry, config)

    assert result.discrepancies == (f"Entry references unknown account {entry.ea_id}",)


def test_invalid_configuration_is_reported(
    ledger: InMemoryLedgerStore, entry: LedgerEntry, config: PluginConfig
) -> None:
    result = _verify(ledger, entry, _with_settings(config, rate_history=[]))

    assert not result.is_valid
    assert result.discrepancies[0].startswith("Invalid plugin configuration: rate_history")


def test_verification_never_writes(
    ledger: InMemoryLedgerStore, entry: LedgerEntry, config: PluginConfig
) -> None:
    ledger.calls.clear()

    _verify(ledger, entry, _with_settings(config, label="Health"))

    assert ledger.calls == ["get_account"]


def test_verify_entries_with_unknown_plugin(
    registry: PluginRegistry,
    ledger: InMemoryLedgerStore,
    entry: LedgerEntry,
    config: PluginConfig,
) -> None:
    results = asyncio.run(
        verify_entries(registry, "retired-plugin", [entry], config, ledger=ledger)
    )

    assert [result.discrepancies for result in results] == [
        ("Unknown charge plugin: retired-plugin",)
    ]


def test_audit_matches_configs_by_key_prefix(
    registry: PluginRegistry,
    ledger: InMemoryLedgerStore,
    entry: LedgerEntry,
    config: PluginConfig,
) -> None:
    unrelated = make_config(PLUGIN.metadata.id, benefit_settings(label="Other"))
    orphan = replace(entry, id=uuid.UUID(int=1), charge_plugin_key="gone:key")
    retired = replace(entry, id=uuid.UUID(int=2), charge_plugin="retired-plugin")

    report = asyncio.run(
        audit_ledger(registry, [entry, orphan, retired], [unrelated, config], ledger=ledger)
    )

    assert report.checked == 3
    assert report.valid_count == 1
    assert [result.discrepancies for result in report.invalid] == [
        ("No matching plugin configuration found for entry",),
        ("Unknown charge plugin: retired-plugin",),
    ]


def test_unrenderable_memo_template_is_reported_not_raised(
    registry: PluginRegistry,
    ledger: InMemoryLedgerStore,
    entry: LedgerEntry,
    config: PluginConfig,
) -> None:
    broken = _with_settings(config, memo_template="{label:d}")

    (result,) = asyncio.run(
        verify_entries(registry, PLUGIN.metadata.id, [entry], broken, ledger=ledger)
    )

    assert not result.is_valid
    assert result.discrepancies[0].startswith(
        "Invalid plugin configuration: memo_template: Template cannot be rendered"
    )
