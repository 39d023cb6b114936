"""Application orchestration entry points."""

from __future__ import annotations

import asyncio
from collections.abc import Callable
from logging import getLogger
from typing import TYPE_CHECKING

from chargerecon.adapters.components import StaticComponentGate
from chargerecon.adapters.sqlalchemy.unit_of_work import (
    SqlAlchemyChargeUnitOfWork,
    is_started,
    startup,
)
from chargerecon.config import get_engine_config
from chargerecon.domain.charges import TriggerDispatcher, audit_ledger
from chargerecon.domain.charges.plugins import build_default_registry
from chargerecon.domain.ports.unit_of_work import ChargeUnitOfWork

if TYPE_CHECKING:
    from chargerecon.config import EngineConfig
    from chargerecon.domain.charges import (
        AuditReport,
        ChargePlugin,
        DispatchSummary,
        PluginRegistry,
    )
    from chargerecon.domain.model import TriggerContext
    from chargerecon.domain.ports import ComponentGate

UnitOfWorkFactory = Callable[[], ChargeUnitOfWork]


log = getLogger(__name__)


def _ensure_started() -> None:
    if not is_started():
        startup()


def _default_gate(engine_config: EngineConfig) -> ComponentGate:
    return StaticComponentGate(engine_config.enabled_components)


def initialise_database(*, database_uri: str | None = None) -> None:
    """Create the charge schema in the configured database."""

    if is_started():
        return
    startup(database_uri=database_uri)
    log.info("Database schema ready")


def build_dispatcher(
    *,
    registry: PluginRegistry | None = None,
    unit_of_work_factory: UnitOfWorkFactory | None = None,
    gate: ComponentGate | None = None,
    engine_config: EngineConfig | None = None,
) -> TriggerDispatcher:
    """Wire a dispatcher from explicit collaborators or the environment defaults."""

    config = engine_config or get_engine_config()
    if unit_of_work_factory is None:
        _ensure_started()
        unit_of_work_factory = SqlAlchemyChargeUnitOfWork
    return TriggerDispatcher(
        registry or build_default_registry(),
        unit_of_work_factory,
        gate=gate or _default_gate(config),
        conflict_retries=config.conflict_retries,
    )


def handle_trigger(
    context: TriggerContext,
    *,
    dispatcher: TriggerDispatcher | None = None,
) -> DispatchSummary:
    """Synchronous entry point for event sources that are not async themselves."""

    effective = dispatcher or build_dispatcher()
    return asyncio.run(effective.dispatch(context))


async def list_enabled_plugins(
    *,
    registry: PluginRegistry | None = None,
    gate: ComponentGate | None = None,
) -> tuple[ChargePlugin, ...]:
    effective_registry = registry or build_default_registry()
    return await effective_registry.enabled(gate or _default_gate(get_engine_config()))


async def run_ledger_audit(
    *,
    registry: PluginRegistry | None = None,
    unit_of_work_factory: UnitOfWorkFactory | None = None,
    plugin_id: str | None = None,
) -> AuditReport:
    """Verify every stored plugin entry (optionally of one plugin) without writing."""

    effective_registry = registry or build_default_registry()
    if unit_of_work_factory is None:
        _ensure_started()
        unit_of_work_factory = SqlAlchemyChargeUnitOfWork
    log.info("Starting ledger audit: plugin=%s", plugin_id or "all")

    with unit_of_work_factory() as uow:
        ledger = uow.repositories.ledger
        entries = await ledger.list_entries(
            charge_plugins=[plugin_id] if plugin_id is not None else None
        )
        configs = await uow.repositories.configs.all()
        return await audit_ledger(effective_registry, entries, configs, ledger=ledger)
