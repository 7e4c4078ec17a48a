"""Apply reviewed classifications to the book store.

Responsibilities of this stage:
- turn each classification plus its decision into link/create/update
- re-check link and update targets against a fresh library snapshot
- record exactly one outcome per classification, even when writes fail

Writes for different records are independent. Each record owns one result slot,
and the tally is computed only after every write has finished. Records that
depend on an earlier record of the same batch (``AlreadyInLibrary`` and
batch-local ``Conflict``) run in a second phase, once their counterpart's
outcome is known.
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Sequence
from concurrent.futures import ThreadPoolExecutor
from concurrent.futures import TimeoutError as FutureTimeoutError
from dataclasses import dataclass, field
from enum import StrEnum
from typing import TYPE_CHECKING

from .contracts import (
    AlreadyInLibrary,
    ClassificationKind,
    Conflict,
    Decision,
    Invalid,
    Matched,
    New,
    PossibleMatch,
    decision_for,
)
from .errors import MalformedBatchError, NotFoundError, StoreError

if TYPE_CHECKING:
    from collections.abc import Mapping

    from shelfmatch.domain.model import BookField, BookId, ImportRecord
    from shelfmatch.domain.ports import BookStore

    from .contracts import Classification, DecisionsByKey

log = logging.getLogger(__name__)

_CLASSIFICATION_TYPES = (Matched, Conflict, PossibleMatch, New, AlreadyInLibrary, Invalid)


class OutcomeAction(StrEnum):
    """Terminal outcome of one classification after merging."""

    LINKED = "linked"
    CREATED = "created"
    UPDATED = "updated"
    FAILED = "failed"
    SKIPPED = "skipped"


@dataclass(frozen=True, slots=True, kw_only=True)
class RecordOutcome:
    """What happened to one import record during confirm."""

    index: int
    kind: ClassificationKind
    action: OutcomeAction
    book_id: BookId | None = None
    demoted: bool = False
    error: str | None = None

    @property
    def resolved(self) -> bool:
        return self.book_id is not None and self.action is not OutcomeAction.FAILED


@dataclass(slots=True)
class ImportResult:
    """Tally of one confirm call."""

    linked: int = 0
    created: int = 0
    updated: int = 0
    failed: int = 0
    skipped: int = 0
    created_ids: list[BookId] = field(default_factory=list["BookId"])
    outcomes: list[RecordOutcome] = field(default_factory=list["RecordOutcome"])

    @classmethod
    def from_outcomes(cls, outcomes: Sequence[RecordOutcome]) -> ImportResult:
        result = cls(outcomes=list(outcomes))
        for outcome in outcomes:
            match outcome.action:
                case OutcomeAction.LINKED:
                    result.linked += 1
                case OutcomeAction.CREATED:
                    result.created += 1
                    if outcome.book_id is not None:
                        result.created_ids.append(outcome.book_id)
                case OutcomeAction.UPDATED:
                    result.updated += 1
                case OutcomeAction.FAILED:
                    result.failed += 1
                case OutcomeAction.SKIPPED:
                    result.skipped += 1
        return result

    @property
    def ok(self) -> bool:
        return self.failed == 0

    @property
    def failures(self) -> list[RecordOutcome]:
        return [outcome for outcome in self.outcomes if outcome.action is OutcomeAction.FAILED]

    def raise_for_failures(self) -> None:
        """Raise ``StoreError`` naming every failed record, if any."""

        failures = self.failures
        if not failures:
            return
        details = "; ".join(f"record {outcome.index}: {outcome.error}" for outcome in failures)
        raise StoreError(f"{len(failures)} import record(s) failed: {details}")


@dataclass(frozen=True, slots=True)
class _PendingWrite:
    index: int
    kind: ClassificationKind
    run: Callable[[], RecordOutcome]


def apply_classifications(
    classifications: Sequence[Classification],
    decisions: DecisionsByKey,
    store: BookStore,
    *,
    timeout: float | None = None,
    max_workers: int = 1,
) -> ImportResult:
    """Merge ``classifications`` into ``store`` and return the per-record tally.

    ``max_workers == 1`` runs writes inline on the calling thread; the store's own
    timeout then applies. With more workers, writes run on a thread pool and any
    write exceeding ``timeout`` is reported as failed (it is not retried).
    """

    _ensure_classifications(classifications)
    live_ids = {book.id for book in store.list_all()}
    applier = _Applier(store=store, decisions=decisions, live_ids=live_ids)

    slots: list[RecordOutcome | None] = [None] * len(classifications)
    position_by_index = {
        classification.index: position for position, classification in enumerate(classifications)
    }

    deferred: list[int] = []
    writes: dict[int, _PendingWrite] = {}
    for position, classification in enumerate(classifications):
        step = applier.plan(classification)
        if step is None:
            deferred.append(position)
        elif isinstance(step, RecordOutcome):
            slots[position] = step
        else:
            writes[position] = step
    _run_writes(writes, slots, timeout=timeout, max_workers=max_workers)

    second_phase: dict[int, _PendingWrite] = {}
    for position in deferred:
        classification = classifications[position]
        assert isinstance(classification, (AlreadyInLibrary, Conflict))
        counterpart_position = position_by_index.get(_counterpart_index(classification))
        if counterpart_position is None:
            step = applier.plan_orphan(classification)
        else:
            step = applier.plan_dependant(classification, slots[counterpart_position])
        if isinstance(step, RecordOutcome):
            slots[position] = step
        else:
            second_phase[position] = step
    _run_writes(second_phase, slots, timeout=timeout, max_workers=max_workers)

    outcomes = [outcome for outcome in slots if outcome is not None]
    if len(outcomes) != len(classifications):
        raise RuntimeError("Merge finished without an outcome for every record")
    result = ImportResult.from_outcomes(outcomes)
    log.info(
        "Applied %s classifications: linked=%s, created=%s, updated=%s, failed=%s, skipped=%s",
        len(outcomes),
        result.linked,
        result.created,
        result.updated,
        result.failed,
        result.skipped,
    )
    return result


def _ensure_classifications(classifications: object) -> None:
    if isinstance(classifications, (str, bytes)) or not isinstance(classifications, Sequence):
        raise MalformedBatchError(
            f"Classifications must be a sequence, got {type(classifications).__name__}"
        )
    seen: set[int] = set()
    for position, classification in enumerate(classifications):
        if not isinstance(classification, _CLASSIFICATION_TYPES):
            raise MalformedBatchError(
                f"Classification {position} is {type(classification).__name__}"
            )
        if classification.index in seen:
            raise MalformedBatchError(f"Duplicate classification index {classification.index}")
        seen.add(classification.index)


def _counterpart_index(classification: AlreadyInLibrary | Conflict) -> int:
    counterpart_index = classification.counterpart_index
    assert counterpart_index is not None
    return counterpart_index


@dataclass(slots=True)
class _Applier:
    store: BookStore
    decisions: DecisionsByKey
    live_ids: set[BookId]

    def plan(
        self,
        classification: Classification,
    ) -> RecordOutcome | _PendingWrite | None:
        """Return an immediate outcome, a pending write, or ``None`` to defer."""

        match classification:
            case Invalid():
                return RecordOutcome(
                    index=classification.index,
                    kind=classification.kind,
                    action=OutcomeAction.SKIPPED,
                    error=classification.reason,
                )
            case Matched():
                return self._link(classification, classification.existing_book.id)
            case New():
                return self._create(classification)
            case PossibleMatch():
                if decision_for(classification, self.decisions) is Decision.ACCEPT:
                    return self._link(classification, classification.existing_book.id)
                return self._create(classification)
            case AlreadyInLibrary():
                return None
            case Conflict():
                if classification.existing_book is None:
                    return None
                if decision_for(classification, self.decisions) is Decision.ACCEPT:
                    return self._update(classification, classification.existing_book.id)
                return self._link(classification, classification.existing_book.id)

    def plan_dependant(
        self,
        classification: AlreadyInLibrary | Conflict,
        counterpart: RecordOutcome | None,
    ) -> RecordOutcome | _PendingWrite:
        """Resolve a record against the outcome of its earlier batch counterpart."""

        if counterpart is None or not counterpart.resolved:
            log.warning(
                "Counterpart of import record %s did not resolve; creating it separately",
                classification.index,
            )
            return self._create(classification, demoted=True)
        assert counterpart.book_id is not None
        if (
            isinstance(classification, Conflict)
            and decision_for(classification, self.decisions) is Decision.ACCEPT
        ):
            return self._update(classification, counterpart.book_id, check_live=False)
        return RecordOutcome(
            index=classification.index,
            kind=classification.kind,
            action=OutcomeAction.LINKED,
            book_id=counterpart.book_id,
        )

    def plan_orphan(
        self,
        classification: AlreadyInLibrary | Conflict,
    ) -> RecordOutcome | _PendingWrite:
        """Counterpart is not part of this confirm payload."""

        if classification.existing_book is not None:
            return self._link(classification, classification.existing_book.id)
        return self._create(classification, demoted=True)

    def _link(
        self,
        classification: Classification,
        book_id: BookId,
    ) -> RecordOutcome | _PendingWrite:
        if book_id not in self.live_ids:
            log.warning(
                "Book %s vanished before confirm; creating import record %s instead",
                book_id,
                classification.index,
            )
            return self._create(classification, demoted=True)
        return RecordOutcome(
            index=classification.index,
            kind=classification.kind,
            action=OutcomeAction.LINKED,
            book_id=book_id,
        )

    def _create(self, classification: Classification, *, demoted: bool = False) -> _PendingWrite:
        record = classification.record
        store = self.store

        def run() -> RecordOutcome:
            return _create_book(store, classification.index, classification.kind, record, demoted)

        return _PendingWrite(index=classification.index, kind=classification.kind, run=run)

    def _update(
        self,
        classification: Conflict,
        book_id: BookId,
        *,
        check_live: bool = True,
    ) -> _PendingWrite:
        if check_live and book_id not in self.live_ids:
            log.warning(
                "Book %s vanished before confirm; creating import record %s instead",
                book_id,
                classification.index,
            )
            return self._create(classification, demoted=True)
        fields: dict[BookField, str | None] = {
            change.field: change.imported for change in classification.differences
        }
        record = classification.record
        store = self.store

        def run() -> RecordOutcome:
            try:
                book = store.update_metadata(book_id, fields)
            except NotFoundError:
                log.warning(
                    "Book %s vanished during confirm; creating import record %s instead",
                    book_id,
                    classification.index,
                )
                return _create_book(store, classification.index, classification.kind, record, True)
            except StoreError as exc:
                return _failed(classification.index, classification.kind, exc)
            return RecordOutcome(
                index=classification.index,
                kind=classification.kind,
                action=OutcomeAction.UPDATED,
                book_id=book.id,
            )

        return _PendingWrite(index=classification.index, kind=classification.kind, run=run)


def _create_book(
    store: BookStore,
    index: int,
    kind: ClassificationKind,
    record: ImportRecord,
    demoted: bool,  # noqa: FBT001
) -> RecordOutcome:
    try:
        book = store.create(
            title=record.title.strip(),
            author=record.author,
            reading_level=record.reading_level,
            isbn=record.isbn,
        )
    except StoreError as exc:
        return _failed(index, kind, exc, demoted=demoted)
    return RecordOutcome(
        index=index,
        kind=kind,
        action=OutcomeAction.CREATED,
        book_id=book.id,
        demoted=demoted,
    )


def _failed(
    index: int,
    kind: ClassificationKind,
    error: Exception | str,
    *,
    demoted: bool = False,
) -> RecordOutcome:
    log.warning("Import record %s failed: %s", index, error)
    return RecordOutcome(
        index=index,
        kind=kind,
        action=OutcomeAction.FAILED,
        demoted=demoted,
        error=str(error),
    )


def _run_writes(
    writes: Mapping[int, _PendingWrite],
    slots: list[RecordOutcome | None],
    *,
    timeout: float | None,
    max_workers: int,
) -> None:
    """Run pending writes and store each outcome in its own slot."""

    if not writes:
        return
    if max_workers <= 1:
        for position, write in writes.items():
            slots[position] = write.run()
        return

    executor = ThreadPoolExecutor(max_workers=max_workers, thread_name_prefix="shelfmatch-write")
    try:
        futures = {position: executor.submit(write.run) for position, write in writes.items()}
        for position, future in futures.items():
            write = writes[position]
            try:
                slots[position] = future.result(timeout=timeout)
            except FutureTimeoutError:
                future.cancel()
                slots[position] = _failed(
                    write.index,
                    write.kind,
                    f"store write timed out after {timeout}s",
                )
    finally:
        executor.shutdown(wait=False, cancel_futures=True)
