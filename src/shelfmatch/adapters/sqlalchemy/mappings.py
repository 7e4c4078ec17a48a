"""SQLAlchemy table metadata for the library book store."""

from __future__ import annotations

import logging
from datetime import UTC, datetime
from typing import TYPE_CHECKING

from sqlalchemy import (
    CheckConstraint,
    Column,
    DateTime,
    Dialect,
    Index,
    MetaData,
    String,
    Table,
    TypeDecorator,
    event,
)

if TYPE_CHECKING:
    from sqlalchemy.engine import Connection, Engine
    from sqlalchemy.engine.interfaces import DBAPIConnection
    from sqlalchemy.pool import ConnectionPoolEntry

log = logging.getLogger(__name__)


class UTCDateTime(TypeDecorator[datetime]):
    impl = DateTime(timezone=True)
    cache_ok = True

    def process_bind_param(self, value: datetime | None, dialect: Dialect) -> datetime | None:
        _ = dialect
        if value is None:
            return None
        if value.tzinfo is None:
            value = value.replace(tzinfo=UTC)
        return value.astimezone(UTC)

    def process_result_value(self, value: datetime | None, dialect: Dialect) -> datetime | None:
        _ = dialect
        if value is None:
            return None
        return value if value.tzinfo else value.replace(tzinfo=UTC)


metadata = MetaData(
    naming_convention={
        "ix": "ix_%(column_0_label)s",
        "uq": "uq_%(table_name)s_%(column_0_label)s",
        "ck": "ck_%(table_name)s_%(constraint_name)s",
        "fk": "fk_%(table_name)s_%(column_0_label)s_%(referred_table_name)s",
        "pk": "pk_%(table_name)s",
    }
)

book_table = Table(
    "book",
    metadata,
    Column("id", String(36), primary_key=True),
    Column("title", String, nullable=False),
    Column("author", String, nullable=True),
    Column("reading_level", String, nullable=True),
    Column("isbn", String, nullable=True),
    Column("created_at", UTCDateTime(), nullable=False),
    Column("updated_at", UTCDateTime(), nullable=False),
    CheckConstraint("length(trim(title)) > 0", name="title_not_blank"),
    Index("ix_book_title", "title"),
    Index("ix_book_author", "author"),
    Index("ix_book_isbn", "isbn"),
)


def enable_sqlite_savepoints(engine: Engine) -> None:
    """Let SQLAlchemy, not pysqlite, emit BEGIN so SAVEPOINT works on SQLite.

    Without this the driver defers BEGIN and releasing the outermost savepoint
    commits behind the session's back.
    """

    if engine.dialect.name != "sqlite":
        return
    if event.contains(engine, "connect", _disable_pysqlite_transactions):
        return
    event.listen(engine, "connect", _disable_pysqlite_transactions)
    event.listen(engine, "begin", _emit_begin)
    log.debug("Enabled explicit transaction control for %s", engine.url)


def _disable_pysqlite_transactions(
    dbapi_connection: DBAPIConnection,
    _connection_record: ConnectionPoolEntry,
) -> None:
    dbapi_connection.isolation_level = None  # pyright: ignore[reportAttributeAccessIssue]


def _emit_begin(connection: Connection) -> None:
    connection.exec_driver_sql("BEGIN")
