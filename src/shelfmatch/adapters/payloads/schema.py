"""Pydantic models describing preview/confirm payloads exchanged with callers."""

from __future__ import annotations

from typing import Annotated

from pydantic import BaseModel, BeforeValidator, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel

from shelfmatch.domain.model import BookField
from shelfmatch.domain.reconciliation.contracts import ClassificationKind, Decision


def _blank_to_none(value: object) -> object:
    if isinstance(value, str):
        stripped = value.strip()
        return stripped or None
    return value


def _number_to_str(value: object) -> object:
    if isinstance(value, bool):
        return value
    if isinstance(value, (int, float)):
        return str(value)
    return value


def _number_to_text(value: object) -> object:
    return _blank_to_none(_number_to_str(value))


# spreadsheet cells arrive as numbers (a title like 1984, a level like 4.5)
CellText = Annotated[str | None, BeforeValidator(_number_to_str)]
OptionalText = Annotated[str | None, BeforeValidator(_number_to_text)]


class PayloadModel(BaseModel):
    model_config = ConfigDict(
        extra="ignore",
        populate_by_name=True,
        alias_generator=to_camel,
    )


class ImportRowPayload(PayloadModel):
    title: CellText = None
    author: OptionalText = None
    reading_level: OptionalText = None
    isbn: OptionalText = None


class PreviewRequest(PayloadModel):
    books: list[dict[str, object]]


class BookPayload(PayloadModel):
    id: str
    title: str
    author: str | None = None
    reading_level: str | None = None
    isbn: str | None = None


class FieldChangePayload(PayloadModel):
    field: BookField
    existing: str | None = None
    imported: str | None = None


class ClassificationPayload(PayloadModel):
    index: int = Field(ge=0)
    kind: ClassificationKind
    record: ImportRowPayload
    key: str | None = None
    existing_book: BookPayload | None = None
    score: float | None = Field(default=None, ge=0.0, le=1.0)
    differences: list[FieldChangePayload] = Field(default_factory=list["FieldChangePayload"])
    counterpart_index: int | None = Field(default=None, ge=0)
    decision_key: str | None = None
    reason: str | None = None


class PreviewResponse(PayloadModel):
    classifications: list[ClassificationPayload]
    summary: dict[ClassificationKind, int]


class ConfirmRequest(PayloadModel):
    classifications: list[ClassificationPayload]
    decisions: dict[str, Decision] = Field(default_factory=dict[str, Decision])

    @field_validator("decisions", mode="before")
    @classmethod
    def _accept_checkbox_values(cls, value: object) -> object:
        """Treat ``true``/``false`` (review checkbox state) as accept/reject."""

        if not isinstance(value, dict):
            return value
        converted: dict[object, object] = {}
        for key, decision in value.items():  # pyright: ignore[reportUnknownVariableType]
            if isinstance(decision, bool):
                converted[key] = Decision.ACCEPT if decision else Decision.REJECT
            else:
                converted[key] = decision
        return converted


class RecordOutcomePayload(PayloadModel):
    index: int
    kind: ClassificationKind
    action: str
    book_id: str | None = None
    demoted: bool = False
    error: str | None = None


class ImportResultPayload(PayloadModel):
    linked: int
    created: int
    updated: int
    failed: int
    skipped: int
    created_ids: list[str]
    outcomes: list[RecordOutcomePayload]
