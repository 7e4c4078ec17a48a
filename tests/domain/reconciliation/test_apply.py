from __future__ import annotations

from typing import TYPE_CHECKING, cast

import pytest

from shelfmatch.domain.model import BookField, LibraryBook
from shelfmatch.domain.reconciliation import (
    AlreadyInLibrary,
    ClassificationKind,
    Decision,
    MalformedBatchError,
    OutcomeAction,
    StoreError,
    apply_classifications,
    classify,
    normalize,
)
from tests.helpers.books import CreateCall, FakeBookStore, UpdateCall, make_record

if TYPE_CHECKING:
    from shelfmatch.domain.model import ImportRecord
    from shelfmatch.domain.reconciliation import Classification


def _preview(store: FakeBookStore, *records: ImportRecord) -> list[Classification]:
    return classify(list(records), store.list_all())


def test_accepted_conflict_updates_the_imported_reading_level(
    charlottes_web: LibraryBook,
) -> None:
    store = FakeBookStore([charlottes_web])
    classifications = _preview(
        store, make_record("Charlotte's Web", "E.B. White", reading_level="5.0")
    )

    result = apply_classifications(classifications, {"b1": Decision.ACCEPT}, store)

    assert result.updated == 1
    assert (result.linked, result.created, result.failed) == (0, 0, 0)
    assert store.update_calls == [
        UpdateCall(book_id="b1", fields={BookField.READING_LEVEL: "5.0"}),
    ]
    assert store.create_calls == []
    assert store.books["b1"].reading_level == "5.0"


def test_accepted_conflict_updates_every_differing_field() -> None:
    book = LibraryBook(id="b7", title="Frindle", reading_level="5", isbn="9780689818769")
    store = FakeBookStore([book])
    classifications = _preview(
        store, make_record("Frindle", reading_level="6", isbn="9780306406157")
    )

    apply_classifications(classifications, {"b7": Decision.ACCEPT}, store)

    assert store.update_calls == [
        UpdateCall(
            book_id="b7",
            fields={BookField.READING_LEVEL: "6", BookField.ISBN: "9780306406157"},
        ),
    ]


@pytest.mark.parametrize("decisions", [{"b1": Decision.REJECT}, {}])
def test_rejected_or_undecided_conflict_links_without_writing(
    charlottes_web: LibraryBook,
    decisions: dict[str, Decision],
) -> None:
    store = FakeBookStore([charlottes_web])
    classifications = _preview(
        store, make_record("Charlotte's Web", "E.B. White", reading_level="5.0")
    )

    result = apply_classifications(classifications, decisions, store)

    assert result.linked == 1
    assert result.outcomes[0].book_id == "b1"
    assert store.write_count == 0


def test_rejected_possible_match_creates_book_from_import_record(
    charlottes_web: LibraryBook,
) -> None:
    store = FakeBookStore([charlottes_web])
    classifications = _preview(store, make_record("Charlottes Web Activity Guide", "E.B. White"))
    assert classifications[0].kind is ClassificationKind.POSSIBLE_MATCH

    result = apply_classifications(classifications, {"b1": Decision.REJECT}, store)

    assert result.created == 1
    assert result.created_ids == ["new-1"]
    assert store.create_calls == [
        CreateCall(
            title="Charlottes Web Activity Guide",
            author="E.B. White",
            reading_level=None,
            isbn=None,
        ),
    ]
    assert store.update_calls == []


def test_accepted_possible_match_links_to_existing_book(charlottes_web: LibraryBook) -> None:
    store = FakeBookStore([charlottes_web])
    classifications = _preview(store, make_record("Charlottes Web Activity Guide", "E.B. White"))

    decisions = cast("dict[str, Decision]", {"b1": "accept"})

    result = apply_classifications(classifications, decisions, store)

    assert result.linked == 1
    assert result.outcomes[0].book_id == "b1"
    assert store.write_count == 0


def test_matched_new_and_invalid_records(charlottes_web: LibraryBook) -> None:
    store = FakeBookStore([charlottes_web])
    classifications = _preview(
        store,
        make_record("Charlotte's Web", "E.B. White"),
        make_record("Hop on Pop", "Dr. Seuss", reading_level="1.5"),
        make_record("   "),
    )

    result = apply_classifications(classifications, {}, store)

    assert [outcome.action for outcome in result.outcomes] == [
        OutcomeAction.LINKED,
        OutcomeAction.CREATED,
        OutcomeAction.SKIPPED,
    ]
    assert (result.linked, result.created, result.skipped) == (1, 1, 1)
    assert result.outcomes[2].error == "title is empty after normalization"
    assert store.create_calls == [
        CreateCall(title="Hop on Pop", author="Dr. Seuss", reading_level="1.5", isbn=None),
    ]


def test_link_target_vanished_before_confirm_is_created(charlottes_web: LibraryBook) -> None:
    store = FakeBookStore([charlottes_web])
    classifications = _preview(store, make_record("Charlotte's Web", "E.B. White"))
    del store.books["b1"]

    result = apply_classifications(classifications, {}, store)

    [outcome] = result.outcomes
    assert outcome.action is OutcomeAction.CREATED
    assert outcome.demoted
    assert result.created == 1
    assert store.create_calls[0].title == "Charlotte's Web"


def test_update_target_vanishing_during_confirm_is_created(charlottes_web: LibraryBook) -> None:
    store = FakeBookStore([charlottes_web], vanishing_ids=["b1"])
    classifications = _preview(
        store, make_record("Charlotte's Web", "E.B. White", reading_level="5.0")
    )

    result = apply_classifications(classifications, {"b1": Decision.ACCEPT}, store)

    assert (result.updated, result.created) == (0, 1)
    assert result.outcomes[0].demoted
    assert store.create_calls == [
        CreateCall(title="Charlotte's Web", author="E.B. White", reading_level="5.0", isbn=None),
    ]


def test_store_failure_is_recorded_and_batch_continues() -> None:
    store = FakeBookStore(failing_titles=["Hop on Pop"])
    classifications = _preview(
        store,
        make_record("Hop on Pop", "Dr. Seuss"),
        make_record("Green Eggs and Ham", "Dr. Seuss"),
    )

    result = apply_classifications(classifications, {}, store)

    assert (result.failed, result.created) == (1, 1)
    assert not result.ok
    failure = result.failures[0]
    assert failure.index == 0
    assert failure.error is not None
    assert "disk full" in failure.error
    with pytest.raises(StoreError, match="record 0"):
        result.raise_for_failures()


def test_failed_update_is_recorded(charlottes_web: LibraryBook) -> None:
    store = FakeBookStore([charlottes_web], failing_updates=["b1"])
    classifications = _preview(
        store, make_record("Charlotte's Web", "E.B. White", reading_level="5.0")
    )

    result = apply_classifications(classifications, {"b1": Decision.ACCEPT}, store)

    assert result.failed == 1
    assert store.create_calls == []


def test_slow_write_times_out_without_blocking_other_records() -> None:
    store = FakeBookStore(blocking_titles=["Hop on Pop"])
    classifications = _preview(
        store,
        make_record("Hop on Pop", "Dr. Seuss"),
        make_record("Green Eggs and Ham", "Dr. Seuss"),
    )

    try:
        result = apply_classifications(classifications, {}, store, timeout=0.05, max_workers=2)
    finally:
        store.release.set()

    assert [outcome.action for outcome in result.outcomes] == [
        OutcomeAction.FAILED,
        OutcomeAction.CREATED,
    ]
    assert result.outcomes[0].error == "store write timed out after 0.05s"


def test_batch_dependants_resolve_against_counterpart_book() -> None:
    store = FakeBookStore()
    classifications = _preview(
        store,
        make_record("Hop on Pop", "Dr. Seuss", reading_level="1.5"),
        make_record("Hop on Pop", "Dr. Seuss", reading_level="1.5"),
        make_record("Hop on Pop", "Dr. Seuss", reading_level="2.0"),
    )
    assert [classification.kind for classification in classifications] == [
        ClassificationKind.NEW,
        ClassificationKind.ALREADY_IN_LIBRARY,
        ClassificationKind.CONFLICT,
    ]

    result = apply_classifications(classifications, {"row:0": Decision.ACCEPT}, store)

    assert (result.created, result.linked, result.updated) == (1, 1, 1)
    assert {outcome.book_id for outcome in result.outcomes} == {"new-1"}
    assert len(store.create_calls) == 1
    assert store.update_calls == [
        UpdateCall(book_id="new-1", fields={BookField.READING_LEVEL: "2.0"}),
    ]


def test_dependant_of_failed_counterpart_creates_its_own_book() -> None:
    store = FakeBookStore(failing_titles=["Hop on Pop"])
    classifications = _preview(
        store,
        make_record("Hop on Pop", "Dr. Seuss"),
        make_record("hop on pop", "Dr. Seuss"),
    )

    result = apply_classifications(classifications, {}, store)

    first, second = result.outcomes
    assert first.action is OutcomeAction.FAILED
    assert second.action is OutcomeAction.CREATED
    assert second.demoted
    assert store.create_calls[-1].title == "hop on pop"


def test_dependant_without_counterpart_in_payload_is_created() -> None:
    record = make_record("Hop on Pop", "Dr. Seuss")
    orphan = AlreadyInLibrary(
        index=3,
        record=record,
        key=normalize(record.title, record.author),
        counterpart_index=0,
    )
    store = FakeBookStore()

    result = apply_classifications([orphan], {}, store)

    assert result.created == 1
    assert result.outcomes[0].demoted


def test_every_classification_gets_exactly_one_outcome(charlottes_web: LibraryBook) -> None:
    store = FakeBookStore([charlottes_web], failing_titles=["Fox in Socks"])
    classifications = _preview(
        store,
        make_record("Charlotte's Web", "E.B. White"),
        make_record("Charlotte's Web", "E.B. White", reading_level="5"),
        make_record("Charlottes Web Activity Guide", "E.B. White"),
        make_record("Fox in Socks", "Dr. Seuss"),
        make_record("fox in socks", "dr seuss"),
        make_record(""),
    )

    result = apply_classifications(classifications, {"b1": Decision.ACCEPT}, store)

    assert [outcome.index for outcome in result.outcomes] == list(range(6))
    total = result.linked + result.created + result.updated + result.failed + result.skipped
    assert total == len(classifications)


def test_duplicate_indices_are_rejected(charlottes_web: LibraryBook) -> None:
    store = FakeBookStore([charlottes_web])
    [classification] = _preview(store, make_record("Charlotte's Web", "E.B. White"))

    with pytest.raises(MalformedBatchError):
        apply_classifications([classification, classification], {}, store)
    assert store.write_count == 0


def test_foreign_items_are_rejected() -> None:
    with pytest.raises(MalformedBatchError):
        apply_classifications(cast("list[Classification]", [object()]), {}, FakeBookStore())
