"""Built-in charge plugins."""

from __future__ import annotations

from chargerecon.domain.charges.plugins.benefit_monthly import (
    MonthlyBenefitChargePlugin,
    MonthlyBenefitSettings,
)
from chargerecon.domain.charges.plugins.hour_fixed import HourFixedChargePlugin, HourFixedSettings
from chargerecon.domain.charges.plugins.payment_allocation import (
    PaymentAllocationPlugin,
    PaymentAllocationSettings,
)
from chargerecon.domain.charges.registry import PluginRegistry


def builtin_plugins() -> tuple[
    MonthlyBenefitChargePlugin | HourFixedChargePlugin | PaymentAllocationPlugin, ...
]:
    return (MonthlyBenefitChargePlugin(), HourFixedChargePlugin(), PaymentAllocationPlugin())


def build_default_registry() -> PluginRegistry:
    """Registry holding every built-in plugin, frozen against later registration."""

    registry = PluginRegistry()
    for plugin in builtin_plugins():
        registry.register(plugin)
    registry.freeze()
    return registry


__all__ = [
    "HourFixedChargePlugin",
    "HourFixedSettings",
    "MonthlyBenefitChargePlugin",
    "MonthlyBenefitSettings",
    "PaymentAllocationPlugin",
    "PaymentAllocationSettings",
    "build_default_registry",
    "builtin_plugins",
]
