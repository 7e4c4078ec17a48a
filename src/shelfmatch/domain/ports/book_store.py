"""Port for the library book store consumed by the import engine."""

from __future__ import annotations

from typing import TYPE_CHECKING, Protocol, runtime_checkable

if TYPE_CHECKING:
    from collections.abc import Mapping, Sequence

    from shelfmatch.domain.model import BookField, BookId, LibraryBook


@runtime_checkable
class BookStore(Protocol):
    """Read/write contract for the library book store.

    ``create`` raises ``StoreError`` on persistence failure. ``update_metadata``
    raises ``NotFoundError`` when ``book_id`` vanished and ``StoreError`` otherwise.
    """

    def list_all(self) -> Sequence[LibraryBook]: ...

    def create(
        self,
        *,
        title: str,
        author: str | None,
        reading_level: str | None,
        isbn: str | None,
    ) -> LibraryBook: ...

    def update_metadata(
        self,
        book_id: BookId,
        fields: Mapping[BookField, str | None],
    ) -> LibraryBook: ...
