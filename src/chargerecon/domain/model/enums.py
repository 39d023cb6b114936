"""Domain enums (pure, dependency-light)."""

from __future__ import annotations

from enum import StrEnum


class TriggerType(StrEnum):
    """Domain events that can cause a charge to appear, change or disappear."""

    HOURS_SAVED = "hours_saved"
    WMB_SAVED = "wmb_saved"
    PAYMENT_SAVED = "payment_saved"


class PluginScope(StrEnum):
    GLOBAL = "global"
    EMPLOYER = "employer"


class LedgerEntityType(StrEnum):
    """Owner kinds an entity-account row can point at."""

    EMPLOYER = "employer"
    WORKER = "worker"
    TRUST_PROVIDER = "trust_provider"
