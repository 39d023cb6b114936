"""The charge plugin contract.

Plugins are independent classes that satisfy ``ChargePlugin`` structurally and are
registered by value in a ``PluginRegistry``; there is no shared base class.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, Protocol, runtime_checkable

from chargerecon.domain.model import PluginScope

if TYPE_CHECKING:
    from collections.abc import Mapping

    from chargerecon.domain.charges.contracts import (
        ExecutionResult,
        SettingsValidation,
        VerificationResult,
    )
    from chargerecon.domain.charges.settings import SettingsModel
    from chargerecon.domain.model import LedgerEntry, PluginConfig, TriggerContext, TriggerType
    from chargerecon.domain.ports import LedgerReader


@dataclass(frozen=True, slots=True, kw_only=True)
class PluginMetadata:
    id: str
    name: str
    description: str
    triggers: frozenset[TriggerType]
    settings_schema: type[SettingsModel]
    default_scope: PluginScope = PluginScope.GLOBAL
    required_component: str | None = None

    def accepts(self, trigger: TriggerType) -> bool:
        return trigger in self.triggers


@runtime_checkable
class ChargePlugin(Protocol):
    """Business logic reacting to triggers by reconciling its own ledger entries."""

    @property
    def metadata(self) -> PluginMetadata: ...

    def validate_settings(self, raw: Mapping[str, Any] | None) -> SettingsValidation: ...

    async def execute(
        self,
        context: TriggerContext,
        config: PluginConfig,
        *,
        ledger: LedgerReader,
    ) -> ExecutionResult:
        """Compute the ledger operations that converge this config's entry for ``context``."""
        ...

    async def verify_entry(
        self,
        entry: LedgerEntry,
        config: PluginConfig,
        *,
        ledger: LedgerReader,
    ) -> VerificationResult:
        """Recompute ``entry`` from its stored metadata and report drift; never writes."""
        ...
