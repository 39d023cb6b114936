"""Charge plugin engine: contracts, reconciliation, audit and dispatch."""

from __future__ import annotations

from chargerecon.domain.charges.contracts import (
    CreateEntry,
    DeleteEntry,
    EntryChanges,
    ExecutionResult,
    ExpectedEntry,
    LedgerOperation,
    Notification,
    NotificationKind,
    SettingsValidation,
    UpdateEntry,
    VerificationResult,
)
from chargerecon.domain.charges.dispatch import (
    DispatchSummary,
    PluginRunSummary,
    TriggerDispatcher,
    apply_operations,
)
from chargerecon.domain.charges.plugin import ChargePlugin, PluginMetadata
from chargerecon.domain.charges.reconcile import (
    AccountOwner,
    ChargeRules,
    MissingMetadataError,
    ReconcileAction,
    ReconciliationPlan,
    derive_key,
    execute_charge,
    plan_reconciliation,
)
from chargerecon.domain.charges.registry import (
    DuplicatePluginError,
    PluginRegistry,
    RegistryFrozenError,
)
from chargerecon.domain.charges.verify import (
    AuditReport,
    audit_ledger,
    verify_charge,
    verify_entries,
)

__all__ = [
    "AccountOwner",
    "AuditReport",
    "ChargePlugin",
    "ChargeRules",
    "CreateEntry",
    "DeleteEntry",
    "DispatchSummary",
    "DuplicatePluginError",
    "EntryChanges",
    "ExecutionResult",
    "ExpectedEntry",
    "LedgerOperation",
    "MissingMetadataError",
    "Notification",
    "NotificationKind",
    "PluginMetadata",
    "PluginRegistry",
    "PluginRunSummary",
    "ReconcileAction",
    "ReconciliationPlan",
    "RegistryFrozenError",
    "SettingsValidation",
    "TriggerDispatcher",
    "UpdateEntry",
    "VerificationResult",
    "apply_operations",
    "audit_ledger",
    "derive_key",
    "execute_charge",
    "plan_reconciliation",
    "verify_charge",
    "verify_entries",
]
