"""Administrator-managed configuration of one charge plugin instance."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any
from uuid import UUID

from chargerecon.domain.errors import ChargeError
from chargerecon.domain.model.enums import PluginScope

if TYPE_CHECKING:
    from collections.abc import Iterable


class InvalidPluginConfigError(ChargeError, ValueError):
    """Raised when a plugin configuration violates its scope rules."""


@dataclass(frozen=True, slots=True, kw_only=True)
class PluginConfig:
    """One configured instance of a plugin.

    ``settings`` is opaque to the engine; the plugin named by ``plugin_id`` validates
    it before every use.
    """

    id: UUID
    plugin_id: str
    scope: PluginScope = PluginScope.GLOBAL
    employer_id: UUID | None = None
    enabled: bool = True
    settings: dict[str, Any] = field(default_factory=dict[str, Any])

    def __post_init__(self) -> None:
        if self.scope is PluginScope.EMPLOYER and self.employer_id is None:
            raise InvalidPluginConfigError(
                "Employer ID is required for employer-scoped configurations"
            )
        if self.scope is PluginScope.GLOBAL and self.employer_id is not None:
            raise InvalidPluginConfigError(
                "Employer ID should not be provided for global configurations"
            )

    @property
    def key_prefix(self) -> str:
        """Prefix shared by every deterministic key derived from this config."""
        return f"{self.id}:"

    def applies_to(self, employer_id: UUID | None) -> bool:
        if self.scope is PluginScope.GLOBAL:
            return True
        return employer_id is not None and employer_id == self.employer_id


def effective_configs(
    configs: Iterable[PluginConfig], employer_id: UUID | None
) -> list[PluginConfig]:
    """Pick the enabled configs that run for an event bound to ``employer_id``.

    Employer-scoped configs for that employer replace the global ones entirely.
    """

    enabled = [config for config in configs if config.enabled]
    if employer_id is not None:
        specific = [
            config
            for config in enabled
            if config.scope is PluginScope.EMPLOYER and config.employer_id == employer_id
        ]
        if specific:
            return specific
    return [config for config in enabled if config.scope is PluginScope.GLOBAL]
