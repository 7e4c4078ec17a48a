"""Book store implementation backed by a SQLAlchemy session."""

from __future__ import annotations

import logging
import uuid
from collections.abc import Callable
from datetime import UTC, datetime
from typing import TYPE_CHECKING

from sqlalchemy import insert, select, update
from sqlalchemy.exc import SQLAlchemyError

from shelfmatch.adapters.sqlalchemy.mappings import book_table
from shelfmatch.domain.model import BookField, LibraryBook
from shelfmatch.domain.reconciliation.errors import NotFoundError, StoreError

if TYPE_CHECKING:
    from collections.abc import Mapping

    from sqlalchemy.engine import RowMapping
    from sqlalchemy.orm import Session

    from shelfmatch.domain.model import BookId

log = logging.getLogger(__name__)

type IdFactory = Callable[[], str]


def new_book_id() -> str:
    return str(uuid.uuid4())


def _utcnow() -> datetime:
    return datetime.now(UTC)


class SqlAlchemyBookStore:
    """Library book store using one session.

    Every write runs inside its own savepoint, so a failed write is rolled back
    alone and earlier writes of the same batch stay pending for the commit.
    """

    def __init__(self, session: Session, *, id_factory: IdFactory = new_book_id) -> None:
        self.session = session
        self._id_factory = id_factory

    def list_all(self) -> list[LibraryBook]:
        stmt = select(book_table).order_by(book_table.c.id)
        try:
            rows = self.session.execute(stmt).mappings().all()
        except SQLAlchemyError as exc:
            raise StoreError("Could not list library books") from exc
        return [_to_book(row) for row in rows]

    def get(self, book_id: BookId) -> LibraryBook:
        stmt = select(book_table).where(book_table.c.id == book_id)
        try:
            row = self.session.execute(stmt).mappings().one_or_none()
        except SQLAlchemyError as exc:
            raise StoreError(f"Could not load book {book_id!r}") from exc
        if row is None:
            raise NotFoundError(book_id)
        return _to_book(row)

    def create(
        self,
        *,
        title: str,
        author: str | None,
        reading_level: str | None,
        isbn: str | None,
    ) -> LibraryBook:
        book = LibraryBook(
            id=self._id_factory(),
            title=title,
            author=author,
            reading_level=reading_level,
            isbn=isbn,
        )
        now = _utcnow()
        stmt = insert(book_table).values(
            id=book.id,
            title=book.title,
            author=book.author,
            reading_level=book.reading_level,
            isbn=book.isbn,
            created_at=now,
            updated_at=now,
        )
        try:
            with self.session.begin_nested():
                self.session.execute(stmt)
        except SQLAlchemyError as exc:
            raise StoreError(f"Could not create book {title!r}") from exc
        log.debug("Created book %s (%s)", book.id, book.title)
        return book

    def update_metadata(
        self,
        book_id: BookId,
        fields: Mapping[BookField, str | None],
    ) -> LibraryBook:
        values: dict[str, object] = {str(BookField(name)): value for name, value in fields.items()}
        values["updated_at"] = _utcnow()
        stmt = update(book_table).where(book_table.c.id == book_id).values(**values)
        try:
            with self.session.begin_nested():
                result = self.session.execute(stmt)
        except SQLAlchemyError as exc:
            raise StoreError(f"Could not update book {book_id!r}") from exc
        if result.rowcount == 0:  # pyright: ignore[reportAttributeAccessIssue]
            raise NotFoundError(book_id)
        log.debug("Updated book %s: %s", book_id, sorted(values))
        return self.get(book_id)


def _to_book(row: RowMapping) -> LibraryBook:
    return LibraryBook(
        id=row["id"],
        title=row["title"],
        author=row["author"],
        reading_level=row["reading_level"],
        isbn=row["isbn"],
    )
