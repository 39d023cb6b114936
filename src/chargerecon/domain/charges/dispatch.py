"""Fan a trigger out to every enabled plugin configuration and apply the results.

Each (plugin, config) invocation runs in its own unit of work and is committed on
its own, so one failing plugin never rolls back or blocks another. A create that
loses a race on the ``(plugin, key)`` uniqueness constraint is rolled back and the
invocation re-run; the second run sees the winner's entry and converges through
an update or a no-op.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from logging import getLogger
from typing import TYPE_CHECKING, assert_never

from chargerecon.common.locks import KeyedLock
from chargerecon.config.engine import DEFAULT_CONFLICT_RETRIES
from chargerecon.domain.charges.contracts import (
    CreateEntry,
    DeleteEntry,
    ExecutionResult,
    UpdateEntry,
)
from chargerecon.domain.model import describe_trigger, employer_of
from chargerecon.domain.ports import DuplicateEntryKeyError, EntryNotFoundError

if TYPE_CHECKING:
    from collections.abc import Callable, Iterable
    from uuid import UUID

    from chargerecon.domain.charges.contracts import LedgerOperation, Notification
    from chargerecon.domain.charges.plugin import ChargePlugin
    from chargerecon.domain.charges.registry import PluginRegistry
    from chargerecon.domain.model import PluginConfig, TriggerContext, TriggerType
    from chargerecon.domain.ports import ChargeUnitOfWork, ComponentGate, LedgerStore

log = getLogger(__name__)


@dataclass(frozen=True, slots=True, kw_only=True)
class PluginRunSummary:
    plugin_id: str
    config_id: UUID | None
    result: ExecutionResult
    attempts: int = 1

    @property
    def applied(self) -> tuple[LedgerOperation, ...]:
        return self.result.transactions if self.result.success else ()


@dataclass(slots=True)
class DispatchSummary:
    trigger: TriggerType
    source: str
    executed: list[PluginRunSummary] = field(default_factory=list["PluginRunSummary"])

    @property
    def operations(self) -> list[LedgerOperation]:
        return [operation for run in self.executed for operation in run.applied]

    @property
    def notifications(self) -> list[Notification]:
        return [
            note
            for run in self.executed
            if run.result.success
            for note in run.result.notifications
        ]

    @property
    def failures(self) -> list[PluginRunSummary]:
        return [run for run in self.executed if not run.result.success]

    @property
    def success(self) -> bool:
        return not self.failures


async def apply_operations(ledger: LedgerStore, operations: Iterable[LedgerOperation]) -> None:
    """Write planned operations through ``ledger``; storage errors propagate."""

    for operation in operations:
        match operation:
            case CreateEntry():
                await ledger.create(operation)
            case UpdateEntry():
                await ledger.update(operation.entry_id, operation.changes)
            case DeleteEntry():
                await ledger.delete_by_key(operation.charge_plugin, operation.charge_plugin_key)
            case _:
                assert_never(operation)


class TriggerDispatcher:
    """Runs every enabled plugin configuration that applies to a trigger."""

    def __init__(
        self,
        registry: PluginRegistry,
        unit_of_work_factory: Callable[[], ChargeUnitOfWork],
        *,
        gate: ComponentGate | None = None,
        conflict_retries: int = DEFAULT_CONFLICT_RETRIES,
        locks: KeyedLock | None = None,
    ) -> None:
        if conflict_retries < 0:
            raise ValueError("conflict_retries must be >= 0")
        self.registry = registry
        self.unit_of_work_factory = unit_of_work_factory
        self.gate = gate
        self.conflict_retries = conflict_retries
        self.locks = locks if locks is not None else KeyedLock()

    async def dispatch(self, context: TriggerContext) -> DispatchSummary:
        source = describe_trigger(context)
        employer_id = employer_of(context)
        summary = DispatchSummary(trigger=context.trigger, source=source)

        for plugin in self.registry.for_trigger(context.trigger):
            plugin_id = plugin.metadata.id
            if not await self.registry.is_enabled(plugin_id, self.gate):
                log.debug("Skipping %s for %s: component disabled", plugin_id, source)
                continue
            try:
                configs = await self._configs_for(plugin_id, employer_id)
            except Exception as exc:  # noqa: BLE001
                log.exception("Could not load configurations of %s for %s", plugin_id, source)
                summary.executed.append(
                    PluginRunSummary(
                        plugin_id=plugin_id,
                        config_id=None,
                        result=ExecutionResult.failed(str(exc) or exc.__class__.__name__),
                    )
                )
                continue
            for config in configs:
                summary.executed.append(await self._run(plugin, config, context, employer_id))

        log.info(
            "Dispatched %s (%s): %s invocation(s), %s operation(s), %s failure(s)",
            context.trigger,
            source,
            len(summary.executed),
            len(summary.operations),
            len(summary.failures),
        )
        return summary

    async def _configs_for(self, plugin_id: str, employer_id: UUID | None) -> list[PluginConfig]:
        with self.unit_of_work_factory() as uow:
            return await uow.repositories.configs.enabled_for_plugin(plugin_id, employer_id)

    async def _run(
        self,
        plugin: ChargePlugin,
        config: PluginConfig,
        context: TriggerContext,
        employer_id: UUID | None,
    ) -> PluginRunSummary:
        plugin_id = plugin.metadata.id
        async with self.locks.hold((plugin_id, config.id, employer_id)):
            attempt = 0
            while True:
                attempt += 1
                try:
                    result = await self._attempt(plugin, config, context)
                except (DuplicateEntryKeyError, EntryNotFoundError) as exc:
                    if attempt > self.conflict_retries:
                        log.error(
                            "%s config %s gave up on %s after %s attempt(s): %s",
                            plugin_id,
                            config.id,
                            describe_trigger(context),
                            attempt,
                            exc,
                        )
                        result = ExecutionResult.failed(str(exc))
                        break
                    log.warning(
                        "%s config %s hit a concurrent write (%s), retrying",
                        plugin_id,
                        config.id,
                        exc,
                    )
                    continue
                except Exception as exc:  # noqa: BLE001
                    log.exception(
                        "%s config %s failed to apply operations for %s",
                        plugin_id,
                        config.id,
                        describe_trigger(context),
                    )
                    result = ExecutionResult.failed(str(exc) or exc.__class__.__name__)
                break
        return PluginRunSummary(
            plugin_id=plugin_id, config_id=config.id, result=result, attempts=attempt
        )

    async def _attempt(
        self,
        plugin: ChargePlugin,
        config: PluginConfig,
        context: TriggerContext,
    ) -> ExecutionResult:
        with self.unit_of_work_factory() as uow:
            ledger = uow.repositories.ledger
            result = await plugin.execute(context, config, ledger=ledger)
            if not result.success:
                uow.rollback()
                return result
            await apply_operations(ledger, result.transactions)
            uow.commit()
            return result
