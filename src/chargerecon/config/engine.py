"""Reconciliation engine settings."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Final

from .env import env_int, env_list

DEFAULT_CONFLICT_RETRIES: Final[int] = 2


@dataclass(frozen=True, slots=True)
class EngineConfig:
    """Tunables for trigger dispatch.

    ``conflict_retries`` bounds how often one plugin invocation is re-run after its
    create lost a race on the ``(plugin, key)`` uniqueness constraint.
    ``enabled_components`` feeds the static component gate; ``None`` switches every
    component on.
    """

    conflict_retries: int = DEFAULT_CONFLICT_RETRIES
    enabled_components: frozenset[str] | None = None


def get_engine_config() -> EngineConfig:
    components = env_list("CHARGERECON_ENABLED_COMPONENTS")
    return EngineConfig(
        conflict_retries=env_int(
            "CHARGERECON_CONFLICT_RETRIES", DEFAULT_CONFLICT_RETRIES, minimum=0
        ),
        enabled_components=frozenset(components) if components is not None else None,
    )
