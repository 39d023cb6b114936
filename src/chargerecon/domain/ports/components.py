"""Port for the feature-component switches that gate plugins."""

from __future__ import annotations

from typing import Protocol, runtime_checkable


@runtime_checkable
class ComponentGate(Protocol):
    """Answers whether an optional product component is switched on."""

    async def is_enabled(self, component: str) -> bool: ...
