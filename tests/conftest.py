from __future__ import annotations

import os
from typing import TYPE_CHECKING

import pytest
from sqlalchemy import create_engine
from sqlalchemy.engine import Engine  # noqa: TC002
from sqlalchemy.orm import Session, sessionmaker

from shelfmatch.adapters.sqlalchemy.mappings import enable_sqlite_savepoints
from shelfmatch.adapters.sqlalchemy.migrations import upgrade_head
from shelfmatch.adapters.sqlalchemy.unit_of_work import (
    SqlAlchemyBookUnitOfWork,
    shutdown,
    startup,
)
from shelfmatch.domain.model import LibraryBook

os.environ.setdefault("DATABASE_URI", "sqlite+pysqlite:///:memory:")

if TYPE_CHECKING:
    from collections.abc import Callable, Iterator


@pytest.fixture
def charlottes_web() -> LibraryBook:
    return LibraryBook(
        id="b1",
        title="Charlotte's Web",
        author="E.B. White",
        reading_level="4.0",
        isbn=None,
    )


@pytest.fixture
def sqlite_engine() -> Iterator[Engine]:
    engine = create_engine("sqlite+pysqlite:///:memory:", future=True)
    enable_sqlite_savepoints(engine)
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
) -> Iterator[Callable[[], SqlAlchemyBookUnitOfWork]]:
    startup(engine=sqlite_engine, force=True)

    def factory() -> SqlAlchemyBookUnitOfWork:
        return SqlAlchemyBookUnitOfWork()

    try:
        yield factory
    finally:
        shutdown()
