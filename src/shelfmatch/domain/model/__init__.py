"""Public domain model surface."""

from __future__ import annotations

from shelfmatch.domain.model.book import ImportRecord, LibraryBook
from shelfmatch.domain.model.enums import BookField
from shelfmatch.domain.model.primitives import BookId, Isbn, ReadingLevel

__all__ = [
    "BookField",
    "BookId",
    "ImportRecord",
    "Isbn",
    "LibraryBook",
    "ReadingLevel",
]
