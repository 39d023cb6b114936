"""Explicit plugin registry built once at startup."""

from __future__ import annotations

from logging import getLogger
from typing import TYPE_CHECKING

from chargerecon.domain.errors import ChargeError

if TYPE_CHECKING:
    from collections.abc import Iterator

    from chargerecon.domain.charges.plugin import ChargePlugin
    from chargerecon.domain.model import TriggerType
    from chargerecon.domain.ports import ComponentGate

log = getLogger(__name__)


class DuplicatePluginError(ChargeError):
    def __init__(self, plugin_id: str) -> None:
        super().__init__(f"Charge plugin {plugin_id!r} is already registered")
        self.plugin_id = plugin_id


class RegistryFrozenError(ChargeError):
    def __init__(self, plugin_id: str) -> None:
        super().__init__(f"Cannot register {plugin_id!r}: the plugin registry is frozen")
        self.plugin_id = plugin_id


class PluginRegistry:
    """Maps plugin ids to plugin values.

    Registration is only allowed until ``freeze`` is called; afterwards the registry
    is read-only and can be shared freely between dispatchers.
    """

    def __init__(self) -> None:
        self._plugins: dict[str, ChargePlugin] = {}
        self._frozen = False

    def register(self, plugin: ChargePlugin) -> None:
        plugin_id = plugin.metadata.id
        if self._frozen:
            raise RegistryFrozenError(plugin_id)
        if plugin_id in self._plugins:
            raise DuplicatePluginError(plugin_id)
        self._plugins[plugin_id] = plugin
        log.debug("Registered charge plugin %s", plugin_id)

    def freeze(self) -> None:
        self._frozen = True

    @property
    def frozen(self) -> bool:
        return self._frozen

    def get(self, plugin_id: str) -> ChargePlugin | None:
        return self._plugins.get(plugin_id)

    def all(self) -> tuple[ChargePlugin, ...]:
        return tuple(self._plugins[plugin_id] for plugin_id in sorted(self._plugins))

    def for_trigger(self, trigger: TriggerType) -> tuple[ChargePlugin, ...]:
        return tuple(plugin for plugin in self.all() if plugin.metadata.accepts(trigger))

    async def is_enabled(self, plugin_id: str, gate: ComponentGate | None) -> bool:
        """A plugin without a required component is always enabled."""

        plugin = self._plugins.get(plugin_id)
        if plugin is None:
            return False
        component = plugin.metadata.required_component
        if component is None or gate is None:
            return True
        return await gate.is_enabled(component)

    async def enabled(self, gate: ComponentGate | None) -> tuple[ChargePlugin, ...]:
        return tuple(
            [plugin for plugin in self.all() if await self.is_enabled(plugin.metadata.id, gate)]
        )

    def __contains__(self, plugin_id: object) -> bool:
        return plugin_id in self._plugins

    def __len__(self) -> int:
        return len(self._plugins)

    def __iter__(self) -> Iterator[ChargePlugin]:
        return iter(self.all())
