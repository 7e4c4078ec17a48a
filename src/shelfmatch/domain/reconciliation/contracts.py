"""Shared reconciliation contract components.

This module intentionally holds only:
- the closed ``Classification`` union produced by the classifier
- the decision shape handed back by the reviewer
- small component dataclasses/enums used inside those
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass
from enum import StrEnum
from typing import TYPE_CHECKING, Literal

if TYPE_CHECKING:
    from shelfmatch.domain.model import BookField, ImportRecord, LibraryBook

    from .normalize import NormalizedKey

BATCH_KEY_PREFIX = "row:"


def batch_key(index: int) -> str:
    """Decision key for a counterpart that only exists inside the current batch."""

    return f"{BATCH_KEY_PREFIX}{index}"


class ClassificationKind(StrEnum):
    """How one import record relates to the library."""

    MATCHED = "matched"
    CONFLICT = "conflict"
    POSSIBLE_MATCH = "possible_match"
    NEW = "new"
    ALREADY_IN_LIBRARY = "already_in_library"
    INVALID = "invalid"


class Decision(StrEnum):
    """Reviewer verdict for a ``Conflict`` or ``PossibleMatch``."""

    ACCEPT = "accept"
    REJECT = "reject"


type DecisionsByKey = Mapping[str, Decision]


@dataclass(frozen=True, slots=True, kw_only=True)
class FieldChange:
    """One comparable field whose imported value disagrees with the library."""

    field: BookField
    existing: str | None
    imported: str | None


@dataclass(frozen=True, slots=True, kw_only=True)
class Matched:
    """Keys are equal and every comparable field agrees."""

    index: int
    record: ImportRecord
    key: NormalizedKey
    existing_book: LibraryBook
    kind: Literal[ClassificationKind.MATCHED] = ClassificationKind.MATCHED


@dataclass(frozen=True, slots=True, kw_only=True)
class Conflict:
    """Keys are equal but at least one comparable field disagrees.

    ``existing_book`` is ``None`` when the counterpart is an earlier record of the
    same batch that is not in the library yet; ``counterpart_index`` then names it.
    """

    index: int
    record: ImportRecord
    key: NormalizedKey
    differences: tuple[FieldChange, ...]
    existing_book: LibraryBook | None = None
    counterpart_index: int | None = None
    kind: Literal[ClassificationKind.CONFLICT] = ClassificationKind.CONFLICT

    def __post_init__(self) -> None:
        if not self.differences:
            raise ValueError("Conflict must include at least one differing field")
        if self.existing_book is None and self.counterpart_index is None:
            raise ValueError("Conflict must reference a library book or a batch counterpart")

    @property
    def decision_key(self) -> str:
        if self.existing_book is not None:
            return self.existing_book.id
        assert self.counterpart_index is not None
        return batch_key(self.counterpart_index)


@dataclass(frozen=True, slots=True, kw_only=True)
class PossibleMatch:
    """Keys are similar but not equal; a reviewer must decide."""

    index: int
    record: ImportRecord
    key: NormalizedKey
    existing_book: LibraryBook
    score: float
    kind: Literal[ClassificationKind.POSSIBLE_MATCH] = ClassificationKind.POSSIBLE_MATCH

    @property
    def decision_key(self) -> str:
        return self.existing_book.id


@dataclass(frozen=True, slots=True, kw_only=True)
class New:
    """No library book meets the similarity threshold."""

    index: int
    record: ImportRecord
    key: NormalizedKey
    kind: Literal[ClassificationKind.NEW] = ClassificationKind.NEW


@dataclass(frozen=True, slots=True, kw_only=True)
class AlreadyInLibrary:
    """Exact duplicate of an earlier record of the same batch."""

    index: int
    record: ImportRecord
    key: NormalizedKey
    counterpart_index: int
    existing_book: LibraryBook | None = None
    kind: Literal[ClassificationKind.ALREADY_IN_LIBRARY] = ClassificationKind.ALREADY_IN_LIBRARY


@dataclass(frozen=True, slots=True, kw_only=True)
class Invalid:
    """Record rejected by validation; it is reported but never written."""

    index: int
    record: ImportRecord
    reason: str
    kind: Literal[ClassificationKind.INVALID] = ClassificationKind.INVALID


type Classification = Matched | Conflict | PossibleMatch | New | AlreadyInLibrary | Invalid
type ReviewableClassification = Conflict | PossibleMatch


def decision_for(classification: ReviewableClassification, decisions: DecisionsByKey) -> Decision:
    """Look up the reviewer's decision; a missing decision means reject."""

    return Decision(decisions.get(classification.decision_key, Decision.REJECT))

