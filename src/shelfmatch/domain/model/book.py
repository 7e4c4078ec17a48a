"""Book value objects shared by the library store and the import engine."""

from __future__ import annotations

from dataclasses import dataclass, replace
from typing import TYPE_CHECKING

from .enums import BookField

if TYPE_CHECKING:
    from collections.abc import Mapping

    from .primitives import BookId, Isbn, ReadingLevel


def _optional_text(value: object) -> str | None:
    if value is None:
        return None
    text = str(value).strip()
    return text or None


@dataclass(frozen=True, slots=True, kw_only=True)
class ImportRecord:
    """One externally sourced row after column mapping.

    ``reading_level`` accepts numeric labels (``4`` or ``4.5``) and stores them as
    text. Blank optional fields collapse to ``None``. The title is kept verbatim;
    the classifier decides whether it is usable. ``error`` is set by adapters
    for a row they could not read; such a record is always invalid.
    """

    title: str
    author: str | None = None
    reading_level: ReadingLevel | None = None
    isbn: Isbn | None = None
    error: str | None = None

    def __post_init__(self) -> None:
        object.__setattr__(self, "author", _optional_text(self.author))
        object.__setattr__(self, "reading_level", _optional_text(self.reading_level))
        object.__setattr__(self, "isbn", _optional_text(self.isbn))


@dataclass(frozen=True, slots=True, kw_only=True)
class LibraryBook:
    """A book owned by the library store."""

    id: BookId
    title: str
    author: str | None = None
    reading_level: ReadingLevel | None = None
    isbn: Isbn | None = None

    def with_fields(self, fields: Mapping[BookField, str | None]) -> LibraryBook:
        """Return a copy carrying ``fields``; the original stays untouched."""

        return replace(self, **{str(name): value for name, value in fields.items()})
