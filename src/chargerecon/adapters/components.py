"""Component gate backed by a fixed set of switched-on component names."""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from collections.abc import Iterable


class StaticComponentGate:
    """``enabled=None`` means every component is on."""

    def __init__(self, enabled: Iterable[str] | None = None) -> None:
        self._enabled = frozenset(enabled) if enabled is not None else None

    async def is_enabled(self, component: str) -> bool:
        if self._enabled is None:
            return True
        return component in self._enabled

    def __repr__(self) -> str:
        shown = "all" if self._enabled is None else sorted(self._enabled)
        return f"StaticComponentGate(enabled={shown})"
