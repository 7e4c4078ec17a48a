"""Deterministic comparison keys for import records and library books.

Responsibilities of this stage:
- derive a title/author key used for exact and fuzzy matching
- canonicalise the comparable metadata fields (reading level, ISBN)
- stay pure: no store access, no environment-dependent behaviour
"""

from __future__ import annotations

import unicodedata
from dataclasses import dataclass
from decimal import Decimal, InvalidOperation

KEY_SEPARATOR = "|"

_ISBN_FORMATTING = str.maketrans("", "", "- ")


@dataclass(frozen=True, slots=True)
class NormalizedKey:
    """Canonical title/author pair; equal keys mean an exact match."""

    title: str
    author: str = ""

    def __str__(self) -> str:
        return f"{self.title}{KEY_SEPARATOR}{self.author}"

    @property
    def tokens(self) -> tuple[str, ...]:
        return (*self.title.split(), *self.author.split())

    @property
    def is_blank(self) -> bool:
        return not self.title


def normalize(title: str | None, author: str | None = None) -> NormalizedKey:
    """Return the comparison key for a title/author pair. Never fails."""

    return NormalizedKey(title=normalize_text(title), author=normalize_text(author))


def normalize_text(value: str | None) -> str:
    if not value:
        return ""
    text = unicodedata.normalize("NFKC", value)
    text = text.casefold()
    text = "".join(ch for ch in text if not unicodedata.category(ch).startswith("P"))
    return " ".join(text.split())


def normalize_reading_level(value: str | None) -> str | None:
    """Canonicalise a reading level label so ``"4"`` and ``"4.0"`` compare equal."""

    if value is None:
        return None
    text = " ".join(value.split()).casefold()
    if not text:
        return None
    try:
        number = Decimal(text)
    except InvalidOperation:
        return text
    if not number.is_finite():
        return text
    normalized = number.normalize()
    # Decimal("40").normalize() renders as "4E+1"
    return format(normalized, "f")


def normalize_isbn(value: str | None) -> str | None:
    """Return the ISBN-13 form of ``value`` when valid, else its stripped text."""

    if value is None:
        return None
    stripped = value.translate(_ISBN_FORMATTING).upper()
    if not stripped:
        return None
    if len(stripped) == 13 and _is_valid_isbn13(stripped):
        return stripped
    if len(stripped) == 10 and _is_valid_isbn10(stripped):
        return _isbn10_to_isbn13(stripped)
    return stripped


def _is_valid_isbn10(digits: str) -> bool:
    total = 0
    for position, char in enumerate(digits):
        if position == 9 and char == "X":
            value = 10
        elif char.isdigit():
            value = int(char)
        else:
            return False
        total += value * (10 - position)
    return total % 11 == 0


def _isbn13_check_digit(first_twelve: str) -> int:
    total = sum(int(char) * (1 if index % 2 == 0 else 3) for index, char in enumerate(first_twelve))
    return (10 - total % 10) % 10


def _is_valid_isbn13(digits: str) -> bool:
    if not digits.isdigit():
        return False
    return _isbn13_check_digit(digits[:12]) == int(digits[12])


def _isbn10_to_isbn13(isbn10: str) -> str:
    base = "978" + isbn10[:9]
    return f"{base}{_isbn13_check_digit(base)}"
