from __future__ import annotations

from typing import TYPE_CHECKING

import pytest

from shelfmatch.app import (
    confirm_book_import,
    list_library_books,
    preview_book_import,
    resolve_reconciliation_config,
)
from shelfmatch.config import ConfigurationError, ReconciliationConfig
from shelfmatch.domain.reconciliation import MalformedBatchError

if TYPE_CHECKING:
    from collections.abc import Callable

    from shelfmatch.adapters.sqlalchemy.unit_of_work import SqlAlchemyBookUnitOfWork

ROWS = [
    {"title": "Charlotte's Web", "author": "E.B. White", "readingLevel": "4.0"},
    {"title": "Hop on Pop", "author": "Dr. Seuss", "readingLevel": 1.5},
]


def _seed_library(factory: Callable[[], SqlAlchemyBookUnitOfWork]) -> str:
    with factory() as uow:
        book = uow.repositories.books.create(
            title="Charlotte's Web", author="E.B. White", reading_level="4.0", isbn=None
        )
        uow.commit()
    return book.id


def test_preview_does_not_write(
    sqlite_unit_of_work: Callable[[], SqlAlchemyBookUnitOfWork],
) -> None:
    _seed_library(sqlite_unit_of_work)

    response = preview_book_import(ROWS, unit_of_work_factory=sqlite_unit_of_work)

    assert [item.kind for item in response.classifications] == ["matched", "new"]
    assert len(list_library_books(unit_of_work_factory=sqlite_unit_of_work)) == 1


def test_preview_then_confirm_persists_changes(
    sqlite_unit_of_work: Callable[[], SqlAlchemyBookUnitOfWork],
) -> None:
    book_id = _seed_library(sqlite_unit_of_work)
    rows = [
        {"title": "Charlotte's Web", "author": "E.B. White", "readingLevel": "5.0"},
        {"title": "Hop on Pop", "author": "Dr. Seuss"},
    ]
    preview = preview_book_import(rows, unit_of_work_factory=sqlite_unit_of_work)
    payload = preview.model_dump(mode="json", by_alias=True)
    payload["decisions"] = {book_id: "accept"}

    result = confirm_book_import(payload, unit_of_work_factory=sqlite_unit_of_work)

    assert (result.updated, result.created, result.failed) == (1, 1, 0)
    stored = list_library_books(unit_of_work_factory=sqlite_unit_of_work)
    books = {book.title: book for book in stored}
    assert books["Charlotte's Web"].reading_level == "5.0"
    assert books["Hop on Pop"].id == result.created_ids[0]


def test_second_confirm_of_same_rows_writes_nothing(
    sqlite_unit_of_work: Callable[[], SqlAlchemyBookUnitOfWork],
) -> None:
    for _ in range(2):
        preview = preview_book_import(ROWS, unit_of_work_factory=sqlite_unit_of_work)
        result = confirm_book_import(
            preview.model_dump(mode="json", by_alias=True),
            unit_of_work_factory=sqlite_unit_of_work,
        )

    assert (result.created, result.linked) == (0, 2)
    assert len(list_library_books(unit_of_work_factory=sqlite_unit_of_work)) == 2


def test_threshold_override_changes_classification(
    sqlite_unit_of_work: Callable[[], SqlAlchemyBookUnitOfWork],
) -> None:
    _seed_library(sqlite_unit_of_work)
    rows = [{"title": "Charlottes Web Activity Guide", "author": "E.B. White"}]

    default = preview_book_import(rows, unit_of_work_factory=sqlite_unit_of_work)
    strict = preview_book_import(rows, unit_of_work_factory=sqlite_unit_of_work, threshold=0.9)

    assert default.classifications[0].kind == "possible_match"
    assert strict.classifications[0].kind == "new"


def test_malformed_payload_is_rejected_before_touching_store() -> None:
    def factory() -> SqlAlchemyBookUnitOfWork:
        raise AssertionError("unit of work should not be requested")

    with pytest.raises(MalformedBatchError):
        preview_book_import({"rows": []}, unit_of_work_factory=factory)
    with pytest.raises(MalformedBatchError):
        confirm_book_import({"decisions": {}}, unit_of_work_factory=factory)


def test_threshold_override_is_validated() -> None:
    base = ReconciliationConfig()

    assert resolve_reconciliation_config(base, threshold=0.8).similarity_threshold == 0.8
    with pytest.raises(ConfigurationError):
        resolve_reconciliation_config(base, threshold=1.5)


def test_confirm_with_several_workers_writes_on_the_session_thread(
    sqlite_unit_of_work: Callable[[], SqlAlchemyBookUnitOfWork],
    caplog: pytest.LogCaptureFixture,
) -> None:
    book_id = _seed_library(sqlite_unit_of_work)
    config = ReconciliationConfig(max_workers=4)
    rows = [
        {"title": "Charlotte's Web", "author": "E.B. White", "readingLevel": "5.0"},
        {"title": "Hop on Pop", "author": "Dr. Seuss"},
        {"title": "Matilda", "author": "Roald Dahl"},
    ]
    preview = preview_book_import(rows, unit_of_work_factory=sqlite_unit_of_work, config=config)
    payload = preview.model_dump(mode="json", by_alias=True)
    payload["decisions"] = {book_id: "accept"}

    with caplog.at_level("WARNING", logger="shelfmatch.app"):
        result = confirm_book_import(
            payload, unit_of_work_factory=sqlite_unit_of_work, config=config
        )

    assert (result.updated, result.created, result.failed) == (1, 2, 0)
    assert "Ignoring max_workers=4" in caplog.text
    titles = {book.title for book in list_library_books(unit_of_work_factory=sqlite_unit_of_work)}
    assert titles == {"Charlotte's Web", "Hop on Pop", "Matilda"}


def test_numeric_spreadsheet_cells_classify_per_row(
    sqlite_unit_of_work: Callable[[], SqlAlchemyBookUnitOfWork],
) -> None:
    rows = [
        {"title": 1984, "author": "George Orwell"},
        {"title": "Hop on Pop", "author": 42},
        {"title": ["not", "text"], "author": "Dr. Seuss"},
    ]

    preview = preview_book_import(rows, unit_of_work_factory=sqlite_unit_of_work)

    assert [item.kind for item in preview.classifications] == ["new", "new", "invalid"]
    assert preview.classifications[0].key == "1984|george orwell"
    assert preview.classifications[1].key == "hop on pop|42"
    assert preview.classifications[2].reason == "unreadable field(s): title"
