"""Domain enums (pure, dependency-light)."""

from __future__ import annotations

from enum import StrEnum


class BookField(StrEnum):
    """Book fields that the store accepts in a metadata update."""

    TITLE = "title"
    AUTHOR = "author"
    READING_LEVEL = "reading_level"
    ISBN = "isbn"
