from __future__ import annotations

import asyncio

from chargerecon.adapters.components import StaticComponentGate
from chargerecon.domain.ports import ComponentGate


def test_gate_without_list_enables_everything() -> None:
    gate = StaticComponentGate()

    assert isinstance(gate, ComponentGate)
    assert asyncio.run(gate.is_enabled("benefits"))
    assert repr(gate) == "StaticComponentGate(enabled=all)"


def test_gate_with_list_only_enables_named_components() -> None:
    gate = StaticComponentGate(["payments", "benefits"])

    assert asyncio.run(gate.is_enabled("benefits"))
    assert not asyncio.run(gate.is_enabled("timesheets"))
    assert repr(gate) == "StaticComponentGate(enabled=['benefits', 'payments'])"
