"""Environment variable loaders for configuration."""

from __future__ import annotations

import os

from .errors import ConfigurationError


def env_int(name: str, default: int, *, minimum: int | None = None) -> int:
    """Read an optional integer variable, falling back to ``default`` when unset."""

    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    try:
        value = int(raw.strip())
    except ValueError as exc:
        raise ConfigurationError(f"{name} must be an integer, got {raw!r}") from exc
    if minimum is not None and value < minimum:
        raise ConfigurationError(f"{name} must be >= {minimum}, got {value}")
    return value


def env_list(name: str) -> tuple[str, ...] | None:
    """Read a comma separated variable into stripped, non-empty items; ``None`` when unset."""

    raw = os.getenv(name)
    if raw is None:
        return None
    return tuple(item.strip() for item in raw.split(",") if item.strip())
