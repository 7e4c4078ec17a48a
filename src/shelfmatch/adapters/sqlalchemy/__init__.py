"""SQLAlchemy adapter package for shelfmatch."""

from __future__ import annotations

from .mappings import book_table, enable_sqlite_savepoints, metadata
from .repositories import SqlAlchemyBookStore
from .unit_of_work import SqlAlchemyBookUnitOfWork, shutdown, startup

__all__ = [
    "SqlAlchemyBookStore",
    "SqlAlchemyBookUnitOfWork",
    "book_table",
    "enable_sqlite_savepoints",
    "metadata",
    "shutdown",
    "startup",
]
