"""Public domain model surface."""

from __future__ import annotations

from chargerecon.domain.model.enums import LedgerEntityType, PluginScope, TriggerType
from chargerecon.domain.model.ledger import AccountRef, LedgerEntry
from chargerecon.domain.model.plugin_config import (
    InvalidPluginConfigError,
    PluginConfig,
    effective_configs,
)
from chargerecon.domain.model.triggers import (
    BenefitSavedContext,
    HoursSavedContext,
    PaymentSavedContext,
    TriggerContext,
    describe_trigger,
    employer_of,
)

__all__ = [
    "AccountRef",
    "BenefitSavedContext",
    "HoursSavedContext",
    "InvalidPluginConfigError",
    "LedgerEntityType",
    "LedgerEntry",
    "PaymentSavedContext",
    "PluginConfig",
    "PluginScope",
    "TriggerContext",
    "TriggerType",
    "describe_trigger",
    "effective_configs",
    "employer_of",
]
