"""Reconciliation core for importing externally sourced books into the library.

Layered flow:
1) normalize title/author pairs into comparison keys
2) classify each import record against the library snapshot
3) collect reviewer decisions for conflicts and possible matches (caller side)
4) apply decisions to the book store and tally the outcome
"""

from __future__ import annotations

from .apply import ImportResult, OutcomeAction, RecordOutcome, apply_classifications
from .classify import classify
from .contracts import (
    AlreadyInLibrary,
    Classification,
    ClassificationKind,
    Conflict,
    Decision,
    DecisionsByKey,
    FieldChange,
    Invalid,
    Matched,
    New,
    PossibleMatch,
)
from .engine import BookImportEngine
from .errors import (
    MalformedBatchError,
    NotFoundError,
    ReconciliationError,
    StoreError,
    ValidationError,
)
from .normalize import NormalizedKey, normalize
from .similarity import Similarity, token_overlap

__all__ = [
    "AlreadyInLibrary",
    "BookImportEngine",
    "Classification",
    "ClassificationKind",
    "Conflict",
    "Decision",
    "DecisionsByKey",
    "FieldChange",
    "ImportResult",
    "Invalid",
    "MalformedBatchError",
    "Matched",
    "New",
    "NormalizedKey",
    "NotFoundError",
    "OutcomeAction",
    "PossibleMatch",
    "ReconciliationError",
    "RecordOutcome",
    "Similarity",
    "StoreError",
    "ValidationError",
    "apply_classifications",
    "classify",
    "normalize",
    "token_overlap",
]
