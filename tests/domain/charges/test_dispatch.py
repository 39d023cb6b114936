from __future__ import annotations

import asyncio
import uuid
from decimal import Decimal
from typing import TYPE_CHECKING, Any

import pytest

from chargerecon.adapters.components import StaticComponentGate
from chargerecon.domain.charges import (
    CreateEntry,
    ExecutionResult,
    PluginMetadata,
    PluginRegistry,
    TriggerDispatcher,
    UpdateEntry,
)
from chargerecon.domain.charges.plugins import MonthlyBenefitChargePlugin
from chargerecon.domain.charges.settings import SettingsModel, validate_settings
from chargerecon.domain.model import LedgerEntry, TriggerType
from chargerecon.domain.ports import DuplicateEntryKeyError
from tests.support.charges import (
    EMPLOYER_ID,
    InMemoryConfigStore,
    InMemoryLedgerStore,
    benefit_settings,
    make_config,
    make_wmb,
    unit_of_work_factory,
)

if TYPE_CHECKING:
    from collections.abc import Mapping

    from chargerecon.domain.charges import SettingsValidation, VerificationResult
    from chargerecon.domain.model import PluginConfig, TriggerContext
    from chargerecon.domain.ports import LedgerReader

BENEFIT = MonthlyBenefitChargePlugin.metadata.id


class ExplodingPlugin:
    metadata = PluginMetadata(
        id="always-fails",
        name="Always Fails",
        description="Raises on every execution.",
        triggers=frozenset({TriggerType.WMB_SAVED}),
        settings_schema=SettingsModel,
    )

    def validate_settings(self, raw: Mapping[str, Any] | None) -> SettingsValidation:
        return validate_settings(SettingsModel, raw)

    async def execute(
        self, context: TriggerContext, config: PluginConfig, *, ledger: LedgerReader
    ) -> ExecutionResult:
        raise RuntimeError("boom")

    async def verify_entry(
        self, entry: LedgerEntry, config: PluginConfig, *, ledger: LedgerReader
    ) -> VerificationResult:
        raise NotImplementedError


class RacingLedgerStore(InMemoryLedgerStore):
    """Loses the first ``races`` creates to a competing transaction."""

    def __init__(self, races: int = 1) -> None:
        super().__init__()
        self.races = races

    async def create(self, transaction: CreateEntry) -> LedgerEntry:
        if self.races:
            self.races -= 1
            self.put(
                LedgerEntry(
                    id=uuid.uuid4(),
                    charge_plugin=transaction.charge_plugin,
                    charge_plugin_key=transaction.charge_plugin_key,
                    ea_id=transaction.ea_id,
                    amount=Decimal("12.00"),
                    memo="written by a concurrent request",
                    reference_type=transaction.reference_type,
                    reference_id=transaction.reference_id,
                    date=transaction.transaction_date,
                    data=dict(transaction.metadata),
                )
            )
            raise DuplicateEntryKeyError(transaction.charge_plugin, transaction.charge_plugin_key)
        return await super().create(transaction)


class AlwaysDuplicateLedgerStore(InMemoryLedgerStore):
    async def create(self, transaction: CreateEntry) -> LedgerEntry:
        raise DuplicateEntryKeyError(transaction.charge_plugin, transaction.charge_plugin_key)


class BrokenConfigStore(InMemoryConfigStore):
    async def enabled_for_plugin(
        self, plugin_id: str, employer_id: uuid.UUID | None
    ) -> list[PluginConfig]:
        raise ConnectionError("config store offline")


def _dispatcher(
    registry: PluginRegistry,
    ledger: InMemoryLedgerStore,
    configs: InMemoryConfigStore,
    **kwargs: Any,
) -> TriggerDispatcher:
    return TriggerDispatcher(registry, unit_of_work_factory(ledger, configs), **kwargs)


def test_dispatch_commits_each_plugin_result(
    registry: PluginRegistry, ledger: InMemoryLedgerStore
) -> None:
    config = make_config(BENEFIT, benefit_settings())
    dispatcher = _dispatcher(registry, ledger, InMemoryConfigStore([config]))

    summary = asyncio.run(dispatcher.dispatch(make_wmb()))

    assert summary.success
    assert summary.source.startswith("wmb:")
    (run,) = summary.executed
    assert run.config_id == config.id
    assert run.attempts == 1
    assert [type(op) for op in summary.operations] == [CreateEntry]
    assert [note.description for note in summary.notifications] == [
        "Ledger entry created: $15.00"
    ]
    ledger.rollback()
    assert len(ledger.entries) == 1


def test_replayed_dispatch_is_a_noop(
    registry: PluginRegistry, ledger: InMemoryLedgerStore
) -> None:
    dispatcher = _dispatcher(
        registry, ledger, InMemoryConfigStore([make_config(BENEFIT, benefit_settings())])
    )
    asyncio.run(dispatcher.dispatch(make_wmb()))

    summary = asyncio.run(dispatcher.dispatch(make_wmb()))

    assert summary.success
    assert summary.operations == []
    assert len(ledger.entries) == 1


def test_failing_plugin_does_not_block_others(ledger: InMemoryLedgerStore) -> None:
    registry = PluginRegistry()
    registry.register(ExplodingPlugin())
    registry.register(MonthlyBenefitChargePlugin())
    configs = InMemoryConfigStore(
        [
            make_config("always-fails", {}),
            make_config(BENEFIT, benefit_settings(rate_history=[])),
            make_config(BENEFIT, benefit_settings()),
        ]
    )

    summary = asyncio.run(_dispatcher(registry, ledger, configs).dispatch(make_wmb()))

    assert not summary.success
    assert [run.plugin_id for run in summary.failures] == ["always-fails", BENEFIT]
    assert summary.failures[0].result.error == "boom"
    assert summary.failures[1].result.error is not None
    assert summary.failures[1].result.error.startswith("Invalid plugin settings")
    assert len(summary.operations) == 1
    assert len(ledger.entries) == 1


def test_disabled_configs_do_not_run(
    registry: PluginRegistry, ledger: InMemoryLedgerStore
) -> None:
    configs = InMemoryConfigStore([make_config(BENEFIT, benefit_settings(), enabled=False)])

    summary = asyncio.run(_dispatcher(registry, ledger, configs).dispatch(make_wmb()))

    assert summary.executed == []
    assert ledger.entries == {}


def test_employer_config_replaces_global_config(
    registry: PluginRegistry, ledger: InMemoryLedgerStore
) -> None:
    employer_rate = [{"effective_date": "2024-01-01", "rate": "20.00"}]
    configs = InMemoryConfigStore(
        [
            make_config(BENEFIT, benefit_settings()),
            make_config(
                BENEFIT, benefit_settings(rate_history=employer_rate), employer_id=EMPLOYER_ID
            ),
        ]
    )
    dispatcher = _dispatcher(registry, ledger, configs)

    own = asyncio.run(dispatcher.dispatch(make_wmb()))
    other = asyncio.run(
        dispatcher.dispatch(make_wmb(employer_id=uuid.uuid4(), wmb_id=uuid.uuid4()))
    )

    (own_create,) = own.operations
    (other_create,) = other.operations
    assert isinstance(own_create, CreateEntry)
    assert isinstance(other_create, CreateEntry)
    assert own_create.amount == Decimal("20.00")
    assert other_create.amount == Decimal("15.00")


def test_component_gate_skips_plugins(
    registry: PluginRegistry, ledger: InMemoryLedgerStore
) -> None:
    configs = InMemoryConfigStore([make_config(BENEFIT, benefit_settings())])
    dispatcher = _dispatcher(registry, ledger, configs, gate=StaticComponentGate(enabled=[]))

    summary = asyncio.run(dispatcher.dispatch(make_wmb()))

    assert summary.executed == []
    assert ledger.entries == {}


def test_config_store_failure_is_reported(
    registry: PluginRegistry, ledger: InMemoryLedgerStore
) -> None:
    summary = asyncio.run(
        _dispatcher(registry, ledger, BrokenConfigStore()).dispatch(make_wmb())
    )

    (run,) = summary.failures
    assert run.config_id is None
    assert run.result.error == "config store offline"


def test_lost_create_race_converges_through_update(registry: PluginRegistry) -> None:
    ledger = RacingLedgerStore()
    configs = InMemoryConfigStore([make_config(BENEFIT, benefit_settings())])

    summary = asyncio.run(_dispatcher(registry, ledger, configs).dispatch(make_wmb()))

    assert summary.success
    (run,) = summary.executed
    assert run.attempts == 2
    (operation,) = run.applied
    assert isinstance(operation, UpdateEntry)
    assert operation.previous_amount == Decimal("12.00")
    (entry,) = ledger.entries.values()
    assert entry.amount == Decimal("15.00")
    assert entry.memo == "Benefit charge: March 2024"


def test_conflict_retries_are_bounded(
    registry: PluginRegistry, caplog: pytest.LogCaptureFixture
) -> None:
    ledger = AlwaysDuplicateLedgerStore()
    configs = InMemoryConfigStore([make_config(BENEFIT, benefit_settings())])
    dispatcher = _dispatcher(registry, ledger, configs, conflict_retries=1)

    summary = asyncio.run(dispatcher.dispatch(make_wmb()))

    (run,) = summary.failures
    assert run.attempts == 2
    assert run.result.error is not None
    assert run.result.error.startswith("Ledger entry already exists for benefit-monthly")
    assert "gave up" in caplog.text
    assert ledger.entries == {}


def test_concurrent_dispatches_of_one_event_create_one_entry(
    registry: PluginRegistry, ledger: InMemoryLedgerStore
) -> None:
    dispatcher = _dispatcher(
        registry, ledger, InMemoryConfigStore([make_config(BENEFIT, benefit_settings())])
    )

    async def scenario() -> list[int]:
        summaries = await asyncio.gather(*(dispatcher.dispatch(make_wmb()) for _ in range(5)))
        return [len(summary.operations) for summary in summaries]

    operation_counts = asyncio.run(scenario())

    assert sorted(operation_counts) == [0, 0, 0, 0, 1]
    assert len(ledger.entries) == 1
    assert len(dispatcher.locks) == 0


def test_negative_retry_budget_is_rejected(
    registry: PluginRegistry, ledger: InMemoryLedgerStore
) -> None:
    with pytest.raises(ValueError, match="conflict_retries"):
        _dispatcher(registry, ledger, InMemoryConfigStore(), conflict_retries=-1)
