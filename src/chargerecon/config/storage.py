"""Location of the ledger database."""

from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Final, Self

APP_DIR_NAME: Final[str] = "chargerecon"
DEFAULT_DB_FILENAME: Final[str] = "chargerecon.db"


@dataclass(frozen=True, slots=True)
class DatabaseConfig:
    uri: str

    @classmethod
    def for_directory(cls, directory: Path) -> Self:
        """SQLite database file inside ``directory``, creating the directory if needed."""

        directory = directory.expanduser().resolve()
        directory.mkdir(parents=True, exist_ok=True)
        return cls(uri=f"sqlite+pysqlite:///{directory / DEFAULT_DB_FILENAME}")


def data_dir() -> Path:
    """``CHARGERECON_DATA_DIR``, else the platform's per-user data directory."""

    explicit = os.getenv("CHARGERECON_DATA_DIR")
    if explicit:
        return Path(explicit).expanduser().resolve()
    if os.name == "nt":
        base = os.getenv("LOCALAPPDATA")
        base_path = Path(base) if base else (Path.home() / "AppData" / "Local")
    else:
        base = os.getenv("XDG_DATA_HOME")
        base_path = Path(base) if base else (Path.home() / ".local" / "share")
    return (base_path / APP_DIR_NAME).expanduser().resolve()


def get_database_config() -> DatabaseConfig:
    env_uri = os.getenv("DATABASE_URI")
    if env_uri:
        return DatabaseConfig(uri=env_uri)
    return DatabaseConfig.for_directory(data_dir())
