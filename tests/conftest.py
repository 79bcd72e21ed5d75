from __future__ import annotations

import os
from typing import TYPE_CHECKING

import pytest
from sqlalchemy import create_engine
from sqlalchemy.engine import Engine  # noqa: TC002
from sqlalchemy.orm import Session, sessionmaker

from claimshield.adapters.sqlalchemy.migrations import upgrade_head
from claimshield.adapters.sqlalchemy.unit_of_work import (
    SqlAlchemyClaimUnitOfWork,
    shutdown,
    startup,
)
from tests.helpers.claims import InMemoryClaimStore

os.environ.setdefault("DATABASE_URI", "sqlite+pysqlite:///:memory:")

if TYPE_CHECKING:
    from collections.abc import Callable, Iterator
    from pathlib import Path


@pytest.fixture
def sqlite_engine() -> Iterator[Engine]:
    engine = create_engine("sqlite+pysqlite:///:memory:", future=True)
    upgrade_head(engine=engine)
    try:
        yield engine
    finally:
        engine.dispose()


@pytest.fixture
def file_sqlite_engine(tmp_path: Path) -> Iterator[Engine]:
    """File-backed database so that separate threads get separate connections."""

    engine = create_engine(
        f"sqlite+pysqlite:///{tmp_path / 'claims.db'}",
        connect_args={"timeout": 30, "check_same_thread": False},
        future=True,
    )
    upgrade_head(engine=engine)
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
) -> Iterator[Callable[[], SqlAlchemyClaimUnitOfWork]]:
    startup(engine=sqlite_engine, force=True)

    def factory() -> SqlAlchemyClaimUnitOfWork:
        return SqlAlchemyClaimUnitOfWork()

    try:
        yield factory
    finally:
        shutdown()


@pytest.fixture
def claim_store() -> InMemoryClaimStore:
    return InMemoryClaimStore()
