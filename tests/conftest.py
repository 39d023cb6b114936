from __future__ import annotations

import os
from typing import TYPE_CHECKING

import pytest
from sqlalchemy import create_engine
from sqlalchemy.engine import Engine  # noqa: TC002
from sqlalchemy.orm import Session, sessionmaker

from chargerecon.adapters.sqlalchemy.mappings import create_all_tables
from chargerecon.adapters.sqlalchemy.unit_of_work import (
    SqlAlchemyChargeUnitOfWork,
    shutdown,
    startup,
)
from chargerecon.domain.charges.plugins import build_default_registry
from tests.support.charges import InMemoryConfigStore, InMemoryLedgerStore

os.environ.setdefault("DATABASE_URI", "sqlite+pysqlite:///:memory:")

if TYPE_CHECKING:
    from collections.abc import Callable, Iterator
    from pathlib import Path

    from chargerecon.domain.charges import PluginRegistry


@pytest.fixture
def sqlite_engine(tmp_path: Path) -> Iterator[Engine]:
    engine = create_engine(f"sqlite+pysqlite:///{tmp_path / 'charges.db'}", future=True)
    create_all_tables(engine)
    try:
        yield engine
    finally:
        engine.dispose()


@pytest.fixture
def sqlite_session(sqlite_engine: Engine) -> Iterator[Session]:
    session_factory = sessionmaker(bind=sqlite_engine, future=True)
    session = session_factory()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def sqlite_unit_of_work(
    sqlite_engine: Engine,
) -> Iterator[Callable[[], SqlAlchemyChargeUnitOfWork]]:
    startup(engine=sqlite_engine, force=True)

    def factory() -> SqlAlchemyChargeUnitOfWork:
        return SqlAlchemyChargeUnitOfWork()

    try:
        yield factory
    finally:
        shutdown()


@pytest.fixture
def registry() -> PluginRegistry:
    return build_default_registry()


@pytest.fixture
def ledger() -> InMemoryLedgerStore:
    return InMemoryLedgerStore()


@pytest.fixture
def configs() -> InMemoryConfigStore:
    return InMemoryConfigStore()
