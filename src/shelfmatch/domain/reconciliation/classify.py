"""Classify import records against the library snapshot.

Responsibilities of this stage:
- give every import record exactly one ``Classification``, in input order
- detect exact duplicates inside the batch before consulting the library
- score near matches with a swappable similarity function
- never mutate the store

Records are processed sequentially: a record can only be a duplicate of an
*earlier* record in the same batch.
"""

from __future__ import annotations

import logging
from collections import Counter
from collections.abc import Sequence
from dataclasses import dataclass
from typing import TYPE_CHECKING

from shelfmatch.domain.model import BookField, ImportRecord, LibraryBook

from .contracts import (
    AlreadyInLibrary,
    Conflict,
    FieldChange,
    Invalid,
    Matched,
    New,
    PossibleMatch,
)
from .errors import MalformedBatchError, ValidationError
from .normalize import NormalizedKey, normalize, normalize_isbn, normalize_reading_level
from .similarity import token_overlap

if TYPE_CHECKING:
    from .contracts import Classification
    from .similarity import Similarity

DEFAULT_SIMILARITY_THRESHOLD = 0.6

log = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class _Counterpart:
    """An earlier record of the batch that later duplicates resolve against."""

    index: int
    record: ImportRecord
    existing_book: LibraryBook | None


def classify(
    records: Sequence[ImportRecord],
    existing_books: Sequence[LibraryBook],
    *,
    threshold: float = DEFAULT_SIMILARITY_THRESHOLD,
    similarity: Similarity = token_overlap,
) -> list[Classification]:
    """Return one classification per record, parallel to ``records``."""

    ensure_batch(records)
    library = _LibraryIndex(existing_books)
    counterparts: dict[NormalizedKey, _Counterpart] = {}
    classifications: list[Classification] = []

    for index, record in enumerate(records):
        try:
            key = validated_key(record)
        except ValidationError as exc:
            log.warning("Rejected import record %s: %s", index, exc)
            classifications.append(Invalid(index=index, record=record, reason=str(exc)))
            continue

        classification = _classify_record(
            index,
            record,
            key,
            library=library,
            counterparts=counterparts,
            threshold=threshold,
            similarity=similarity,
        )
        if isinstance(classification, (New, Matched)) and key not in counterparts:
            counterparts[key] = _Counterpart(
                index=index,
                record=record,
                existing_book=classification.existing_book
                if isinstance(classification, Matched)
                else None,
            )
        classifications.append(classification)

    tally = Counter(str(classification.kind) for classification in classifications)
    log.info(
        "Classified %s import records against %s library books: %s",
        len(classifications),
        len(existing_books),
        dict(sorted(tally.items())),
    )
    return classifications


def ensure_batch(records: object) -> None:
    """Reject structurally malformed input before any record is processed."""

    if isinstance(records, (str, bytes)) or not isinstance(records, Sequence):
        raise MalformedBatchError(
            f"Import batch must be a sequence of records, got {type(records).__name__}"
        )
    for position, record in enumerate(records):
        if not isinstance(record, ImportRecord):
            raise MalformedBatchError(
                f"Import batch item {position} is {type(record).__name__}, expected ImportRecord"
            )


def validated_key(record: ImportRecord) -> NormalizedKey:
    """Return the record's key or raise ``ValidationError`` when the title is blank."""

    if record.error is not None:
        raise ValidationError(record.error)
    if not isinstance(record.title, str):
        raise ValidationError("title is required")
    key = normalize(record.title, record.author)
    if key.is_blank:
        raise ValidationError("title is empty after normalization")
    return key


def compare_metadata(record: ImportRecord, book: LibraryBook) -> tuple[FieldChange, ...]:
    """Comparable fields where ``record`` disagrees with ``book``.

    The reading level counts whenever the record provides one; the ISBN only when
    both sides provide one.
    """

    changes: list[FieldChange] = []
    imported_level = normalize_reading_level(record.reading_level)
    if imported_level is not None and imported_level != normalize_reading_level(
        book.reading_level
    ):
        changes.append(
            FieldChange(
                field=BookField.READING_LEVEL,
                existing=book.reading_level,
                imported=record.reading_level,
            )
        )
    imported_isbn = normalize_isbn(record.isbn)
    existing_isbn = normalize_isbn(book.isbn)
    if imported_isbn is not None and existing_isbn is not None and imported_isbn != existing_isbn:
        changes.append(FieldChange(field=BookField.ISBN, existing=book.isbn, imported=record.isbn))
    return tuple(changes)


def _classify_record(
    index: int,
    record: ImportRecord,
    key: NormalizedKey,
    *,
    library: _LibraryIndex,
    counterparts: dict[NormalizedKey, _Counterpart],
    threshold: float,
    similarity: Similarity,
) -> Classification:
    counterpart = counterparts.get(key)
    if counterpart is not None:
        return _classify_batch_duplicate(index, record, key, counterpart)

    exact = library.exact(key)
    if exact is not None:
        differences = compare_metadata(record, exact)
        if differences:
            return Conflict(
                index=index,
                record=record,
                key=key,
                existing_book=exact,
                differences=differences,
            )
        return Matched(index=index, record=record, key=key, existing_book=exact)

    best = library.most_similar(key, similarity)
    if best is not None:
        score, book = best
        # non-equal keys may still share every token (reordered words)
        if score >= threshold:
            return PossibleMatch(
                index=index,
                record=record,
                key=key,
                existing_book=book,
                score=score,
            )
    return New(index=index, record=record, key=key)


def _classify_batch_duplicate(
    index: int,
    record: ImportRecord,
    key: NormalizedKey,
    counterpart: _Counterpart,
) -> Classification:
    reference = counterpart.existing_book or _as_pending_book(counterpart)
    differences = compare_metadata(record, reference)
    if differences:
        return Conflict(
            index=index,
            record=record,
            key=key,
            existing_book=counterpart.existing_book,
            counterpart_index=counterpart.index,
            differences=differences,
        )
    return AlreadyInLibrary(
        index=index,
        record=record,
        key=key,
        counterpart_index=counterpart.index,
        existing_book=counterpart.existing_book,
    )


def _as_pending_book(counterpart: _Counterpart) -> LibraryBook:
    record = counterpart.record
    return LibraryBook(
        id="",
        title=record.title,
        author=record.author,
        reading_level=record.reading_level,
        isbn=record.isbn,
    )


class _LibraryIndex:
    """Library snapshot keyed for exact lookup and ordered for deterministic scans."""

    def __init__(self, books: Sequence[LibraryBook]) -> None:
        ordered = sorted(books, key=lambda book: book.id)
        self._keyed: list[tuple[NormalizedKey, LibraryBook]] = [
            (normalize(book.title, book.author), book) for book in ordered
        ]
        self._by_key: dict[NormalizedKey, LibraryBook] = {}
        for key, book in self._keyed:
            # ordered by id, so the smallest id wins for duplicate keys
            self._by_key.setdefault(key, book)

    def exact(self, key: NormalizedKey) -> LibraryBook | None:
        return self._by_key.get(key)

    def most_similar(
        self,
        key: NormalizedKey,
        similarity: Similarity,
    ) -> tuple[float, LibraryBook] | None:
        best: tuple[float, LibraryBook] | None = None
        for candidate_key, book in self._keyed:
            score = similarity(key, candidate_key)
            # strict comparison keeps the earliest (smallest id) book on ties
            if best is None or score > best[0]:
                best = (score, book)
        return best
