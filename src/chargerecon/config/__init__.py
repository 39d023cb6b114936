"""Application configuration helpers."""

from __future__ import annotations

from chargerecon.common.logging import configure_logging

from .engine import EngineConfig, get_engine_config
from .env import env_int, env_list
from .errors import ConfigurationError
from .storage import DatabaseConfig, data_dir, get_database_config

__all__ = [
    "ConfigurationError",
    "DatabaseConfig",
    "EngineConfig",
    "configure_logging",
    "data_dir",
    "env_int",
    "env_list",
    "get_database_config",
    "get_engine_config",
]
