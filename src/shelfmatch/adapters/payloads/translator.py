"""Translate caller payloads into reconciliation types and back."""

from __future__ import annotations

from collections import Counter
from typing import TYPE_CHECKING

from pydantic import ValidationError as PydanticValidationError

from shelfmatch.domain.model import ImportRecord, LibraryBook
from shelfmatch.domain.reconciliation.contracts import (
    AlreadyInLibrary,
    ClassificationKind,
    Conflict,
    FieldChange,
    Invalid,
    Matched,
    New,
    PossibleMatch,
)
from shelfmatch.domain.reconciliation.errors import MalformedBatchError
from shelfmatch.domain.reconciliation.normalize import normalize

from .schema import (
    BookPayload,
    ClassificationPayload,
    ConfirmRequest,
    FieldChangePayload,
    ImportResultPayload,
    ImportRowPayload,
    PreviewRequest,
    PreviewResponse,
    RecordOutcomePayload,
)

if TYPE_CHECKING:
    from collections.abc import Mapping, Sequence

    from shelfmatch.domain.reconciliation.apply import ImportResult
    from shelfmatch.domain.reconciliation.contracts import Classification, Decision


def parse_preview_request(payload: object) -> list[ImportRecord]:
    """Validate a preview payload: a list of rows, or ``{"books": [...]}``.

    Only the batch shape is fatal. A row whose cells cannot be read as text
    becomes a record carrying ``error``, which classifies as invalid.
    """

    wrapped = {"books": payload} if isinstance(payload, list) else payload
    try:
        request = PreviewRequest.model_validate(wrapped)
    except PydanticValidationError as exc:
        raise MalformedBatchError(f"Invalid preview payload: {exc}") from exc
    return [_read_row(row) for row in request.books]


def parse_confirm_request(payload: object) -> tuple[list[Classification], dict[str, Decision]]:
    """Rebuild classifications and decisions from a confirm payload."""

    try:
        request = ConfirmRequest.model_validate(payload)
    except PydanticValidationError as exc:
        raise MalformedBatchError(f"Invalid confirm payload: {exc}") from exc
    classifications = [_to_classification(item) for item in request.classifications]
    return classifications, dict(request.decisions)


def to_preview_response(classifications: Sequence[Classification]) -> PreviewResponse:
    summary = Counter(classification.kind for classification in classifications)
    return PreviewResponse(
        classifications=[_from_classification(item) for item in classifications],
        summary={kind: summary.get(kind, 0) for kind in ClassificationKind},
    )


def to_import_result_payload(result: ImportResult) -> ImportResultPayload:
    return ImportResultPayload(
        linked=result.linked,
        created=result.created,
        updated=result.updated,
        failed=result.failed,
        skipped=result.skipped,
        created_ids=list(result.created_ids),
        outcomes=[
            RecordOutcomePayload(
                index=outcome.index,
                kind=outcome.kind,
                action=str(outcome.action),
                book_id=outcome.book_id,
                demoted=outcome.demoted,
                error=outcome.error,
            )
            for outcome in result.outcomes
        ],
    )


def to_book_payload(book: LibraryBook) -> BookPayload:
    return BookPayload(
        id=book.id,
        title=book.title,
        author=book.author,
        reading_level=book.reading_level,
        isbn=book.isbn,
    )


def _read_row(row: Mapping[str, object]) -> ImportRecord:
    try:
        payload = ImportRowPayload.model_validate(row)
    except PydanticValidationError as exc:
        fields = sorted({str(error["loc"][0]) for error in exc.errors() if error["loc"]})
        return ImportRecord(title="", error=f"unreadable field(s): {', '.join(fields)}")
    return _to_record(payload)


def _to_record(row: ImportRowPayload) -> ImportRecord:
    return ImportRecord(
        title=row.title or "",
        author=row.author,
        reading_level=row.reading_level,
        isbn=row.isbn,
    )


def _to_row(record: ImportRecord) -> ImportRowPayload:
    return ImportRowPayload(
        title=record.title,
        author=record.author,
        reading_level=record.reading_level,
        isbn=record.isbn,
    )


def _to_book(payload: BookPayload) -> LibraryBook:
    return LibraryBook(
        id=payload.id,
        title=payload.title,
        author=payload.author,
        reading_level=payload.reading_level,
        isbn=payload.isbn,
    )


def _require_book(item: ClassificationPayload) -> LibraryBook:
    if item.existing_book is None:
        raise MalformedBatchError(f"Classification {item.index} ({item.kind}) needs existingBook")
    return _to_book(item.existing_book)


def _require_counterpart(item: ClassificationPayload) -> int:
    if item.counterpart_index is None:
        raise MalformedBatchError(
            f"Classification {item.index} ({item.kind}) needs counterpartIndex"
        )
    return item.counterpart_index


def _to_classification(item: ClassificationPayload) -> Classification:
    record = _to_record(item.record)
    # the key is recomputed rather than trusted from the payload
    key = normalize(record.title, record.author)
    match item.kind:
        case ClassificationKind.MATCHED:
            return Matched(
                index=item.index,
                record=record,
                key=key,
                existing_book=_require_book(item),
            )
        case ClassificationKind.POSSIBLE_MATCH:
            if item.score is None:
                raise MalformedBatchError(
                    f"Classification {item.index} (possible_match) needs score"
                )
            return PossibleMatch(
                index=item.index,
                record=record,
                key=key,
                existing_book=_require_book(item),
                score=item.score,
            )
        case ClassificationKind.NEW:
            return New(index=item.index, record=record, key=key)
        case ClassificationKind.ALREADY_IN_LIBRARY:
            return AlreadyInLibrary(
                index=item.index,
                record=record,
                key=key,
                counterpart_index=_require_counterpart(item),
                existing_book=_to_book(item.existing_book) if item.existing_book else None,
            )
        case ClassificationKind.CONFLICT:
            existing_book = _to_book(item.existing_book) if item.existing_book else None
            try:
                return Conflict(
                    index=item.index,
                    record=record,
                    key=key,
                    existing_book=existing_book,
                    counterpart_index=item.counterpart_index,
                    differences=tuple(
                        FieldChange(
                            field=change.field,
                            existing=change.existing,
                            imported=change.imported,
                        )
                        for change in item.differences
                    ),
                )
            except ValueError as exc:
                raise MalformedBatchError(
                    f"Classification {item.index} (conflict): {exc}"
                ) from exc
        case ClassificationKind.INVALID:
            return Invalid(index=item.index, record=record, reason=item.reason or "invalid record")


def _from_classification(classification: Classification) -> ClassificationPayload:
    payload = ClassificationPayload(
        index=classification.index,
        kind=classification.kind,
        record=_to_row(classification.record),
    )
    match classification:
        case Matched():
            payload.key = str(classification.key)
            payload.existing_book = to_book_payload(classification.existing_book)
        case PossibleMatch():
            payload.key = str(classification.key)
            payload.existing_book = to_book_payload(classification.existing_book)
            payload.score = round(classification.score, 4)
            payload.decision_key = classification.decision_key
        case New():
            payload.key = str(classification.key)
        case AlreadyInLibrary():
            payload.key = str(classification.key)
            payload.counterpart_index = classification.counterpart_index
            if classification.existing_book is not None:
                payload.existing_book = to_book_payload(classification.existing_book)
        case Conflict():
            payload.key = str(classification.key)
            payload.counterpart_index = classification.counterpart_index
            payload.decision_key = classification.decision_key
            payload.differences = [
                FieldChangePayload(
                    field=change.field,
                    existing=change.existing,
                    imported=change.imported,
                )
                for change in classification.differences
            ]
            if classification.existing_book is not None:
                payload.existing_book = to_book_payload(classification.existing_book)
        case Invalid():
            payload.reason = classification.reason
    return payload
