from __future__ import annotations

import asyncio
from datetime import date
from decimal import Decimal
from typing import TYPE_CHECKING

import pytest

from chargerecon.domain.charges import CreateEntry, DeleteEntry, UpdateEntry, apply_operations
from chargerecon.domain.charges.plugins import MonthlyBenefitChargePlugin
from chargerecon.domain.model import LedgerEntityType
from tests.support.charges import (
    ACCOUNT_ID,
    EMPLOYER_ID,
    OTHER_BENEFIT_ID,
    WORKER_ID,
    InMemoryLedgerStore,
    benefit_settings,
    make_config,
    make_wmb,
)

if TYPE_CHECKING:
    from chargerecon.domain.charges import ExecutionResult
    from chargerecon.domain.model import BenefitSavedContext, PluginConfig

PLUGIN = MonthlyBenefitChargePlugin()


def _run(
    ledger: InMemoryLedgerStore, context: BenefitSavedContext, config: PluginConfig
) -> ExecutionResult:
    async def scenario() -> ExecutionResult:
        result = await PLUGIN.execute(context, config, ledger=ledger)
        await apply_operations(ledger, result.transactions)
        return result

    return asyncio.run(scenario())


def test_benefit_saved_creates_monthly_charge(ledger: InMemoryLedgerStore) -> None:
    config = make_config(PLUGIN.metadata.id, benefit_settings())

    result = _run(ledger, make_wmb(), config)

    assert result.success
    assert len(result.transactions) == 1
    transaction = result.transactions[0]
    assert isinstance(transaction, CreateEntry)
    assert transaction.amount == Decimal("15.00")
    assert "March 2024" in transaction.description
    assert transaction.transaction_date == date(2024, 3, 31)
    (account,) = ledger.accounts.values()
    assert account.entity_type is LedgerEntityType.EMPLOYER
    assert account.entity_id == EMPLOYER_ID
    assert account.account_id == ACCOUNT_ID
    assert transaction.charge_plugin_key == f"{config.id}:{account.id}:{WORKER_ID}:2024:3"
    assert [note.description for note in result.notifications] == [
        "Ledger entry created: $15.00"
    ]


def test_replaying_the_same_event_is_a_noop(ledger: InMemoryLedgerStore) -> None:
    config = make_config(PLUGIN.metadata.id, benefit_settings())
    _run(ledger, make_wmb(), config)
    snapshot = dict(ledger.entries)

    for _ in range(3):
        result = _run(ledger, make_wmb(), config)
        assert result.success
        assert result.transactions == ()
        assert result.message == "Ledger entry already matches expected state"

    assert ledger.entries == snapshot


def test_key_is_stable_across_replays(ledger: InMemoryLedgerStore) -> None:
    config = make_config(PLUGIN.metadata.id, benefit_settings())
    first = _run(ledger, make_wmb(), config).transactions[0]
    ledger.entries.clear()

    second = _run(ledger, make_wmb(), config).transactions[0]

    assert isinstance(first, CreateEntry)
    assert isinstance(second, CreateEntry)
    assert first.charge_plugin_key == second.charge_plugin_key


def test_rate_change_converges_through_update(ledger: InMemoryLedgerStore) -> None:
    config = make_config(PLUGIN.metadata.id, benefit_settings())
    _run(ledger, make_wmb(), config)
    retroactive = make_config(
        PLUGIN.metadata.id,
        benefit_settings(
            rate_history=[
                {"effective_date": "2024-01-01", "rate": "15.00"},
                {"effective_date": "2024-03-01", "rate": "18.50"},
            ]
        ),
        config_id=config.id,
    )

    result = _run(ledger, make_wmb(), retroactive)

    (operation,) = result.transactions
    assert isinstance(operation, UpdateEntry)
    assert operation.changed_fields == ("amount",)
    assert result.notifications[0].description == "Ledger entry updated: $15.00 → $18.50"
    (entry,) = ledger.entries.values()
    assert entry.amount == Decimal("18.50")
    assert _run(ledger, make_wmb(), retroactive).transactions == ()


def test_memo_template_change_updates_only_when_memo_differs(
    ledger: InMemoryLedgerStore,
) -> None:
    config = make_config(PLUGIN.metadata.id, benefit_settings())
    _run(ledger, make_wmb(), config)
    same_memo = make_config(
        PLUGIN.metadata.id,
        benefit_settings(memo_template="{label}: {month_name} {year}"),
        config_id=config.id,
    )
    new_memo = make_config(
        PLUGIN.metadata.id,
        benefit_settings(memo_template="{label} for {period}"),
        config_id=config.id,
    )

    unchanged = _run(ledger, make_wmb(), same_memo)
    changed = _run(ledger, make_wmb(), new_memo)

    assert unchanged.transactions == ()
    (operation,) = changed.transactions
    assert isinstance(operation, UpdateEntry)
    assert operation.changed_fields == ("memo",)
    assert operation.changes.memo == "Benefit charge for March 2024"
    assert changed.notifications[0].description == "Ledger entry updated: $15.00"


def test_other_benefit_is_skipped_without_lookup(ledger: InMemoryLedgerStore) -> None:
    config = make_config(PLUGIN.metadata.id, benefit_settings())
    _run(ledger, make_wmb(), config)
    ledger.calls.clear()

    result = _run(ledger, make_wmb(benefit_id=OTHER_BENEFIT_ID), config)

    assert result.success
    assert result.transactions == ()
    assert result.message == "WMB benefit does not match configured benefit"
    assert ledger.calls == []
    assert len(ledger.entries) == 1


def test_deleted_benefit_removes_entry(ledger: InMemoryLedgerStore) -> None:
    config = make_config(PLUGIN.metadata.id, benefit_settings())
    _run(ledger, make_wmb(), config)

    result = _run(ledger, make_wmb(is_deleted=True), config)

    (operation,) = result.transactions
    assert isinstance(operation, DeleteEntry)
    assert result.message == "Deleted ledger entry - charge no longer applies"
    assert result.notifications[0].description == "Ledger entry deleted: -$15.00"
    assert ledger.entries == {}
    assert _run(ledger, make_wmb(is_deleted=True), config).message == "No charge applicable"


def test_zero_rate_period_removes_existing_entry(ledger: InMemoryLedgerStore) -> None:
    config = make_config(PLUGIN.metadata.id, benefit_settings())
    _run(ledger, make_wmb(), config)
    paused = make_config(
        PLUGIN.metadata.id,
        benefit_settings(
            rate_history=[
                {"effective_date": "2024-01-01", "rate": "15.00"},
                {"effective_date": "2024-03-01", "rate": 0},
            ]
        ),
        config_id=config.id,
    )

    result = _run(ledger, make_wmb(), paused)

    assert isinstance(result.transactions[0], DeleteEntry)
    assert ledger.entries == {}


def test_month_before_first_rate_has_no_charge(ledger: InMemoryLedgerStore) -> None:
    config = make_config(PLUGIN.metadata.id, benefit_settings())

    result = _run(ledger, make_wmb(year=2023, month=12), config)

    assert result.success
    assert result.transactions == ()
    assert result.message == "No charge applicable"


def test_rate_is_taken_from_first_day_of_month(ledger: InMemoryLedgerStore) -> None:
    config = make_config(
        PLUGIN.metadata.id,
        benefit_settings(
            rate_history=[
                {"effective_date": "2024-01-01", "rate": "10.00"},
                {"effective_date": "2024-06-02", "rate": "12.00"},
            ]
        ),
    )

    result = _run(ledger, make_wmb(month=6), config)

    (operation,) = result.transactions
    assert isinstance(operation, CreateEntry)
    assert operation.amount == Decimal("10.00")
    assert operation.metadata["effective_date"] == "2024-01-01"


@pytest.mark.parametrize(
    ("settings", "fragment"),
    [
        (benefit_settings(account_id="not-a-uuid"), "account_id"),
        (benefit_settings(rate_history=[]), "rate_history"),
        (
            benefit_settings(rate_history=[{"effective_date": "03/01/2024", "rate": 1}]),
            "Date must be in YYYY-MM-DD format",
        ),
        (benefit_settings(memo_template="{label} {worker}"), "Unknown placeholder(s) worker"),
        ({**benefit_settings(), "unexpected": True}, "unexpected"),
    ],
)
def test_validate_settings_reports_errors(settings: dict[str, object], fragment: str) -> None:
    validation = PLUGIN.validate_settings(settings)

    assert not validation.valid
    assert any(fragment in error for error in validation.errors)


def test_validate_settings_accepts_defaults() -> None:
    assert PLUGIN.validate_settings(benefit_settings()).valid


@pytest.mark.parametrize("template", ["{label:d}", "{year:%Y}", "{month!z}", "{label"])
def test_unrenderable_memo_template_is_rejected(template: str) -> None:
    validation = PLUGIN.validate_settings(benefit_settings(memo_template=template))

    assert not validation.valid
    assert validation.errors[0].startswith("memo_template")


def test_unrenderable_memo_template_fails_before_touching_ledger(
    ledger: InMemoryLedgerStore,
) -> None:
    config = make_config(PLUGIN.metadata.id, benefit_settings(memo_template="{label:d}"))

    result = _run(ledger, make_wmb(), config)

    assert not result.success
    assert result.error is not None
    assert result.error.startswith("Invalid plugin settings")
    assert result.transactions == ()
    assert ledger.calls == []


def test_memo_template_format_spec_is_applied(ledger: InMemoryLedgerStore) -> None:
    config = make_config(
        PLUGIN.metadata.id, benefit_settings(memo_template="{label} {month:02d}/{year}")
    )

    result = _run(ledger, make_wmb(), config)

    (operation,) = result.transactions
    assert isinstance(operation, CreateEntry)
    assert operation.description == "Benefit charge 03/2024"
