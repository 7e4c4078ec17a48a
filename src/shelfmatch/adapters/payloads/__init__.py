"""Preview/confirm payload adapter."""

from __future__ import annotations

from .schema import (
    ClassificationPayload,
    ConfirmRequest,
    ImportResultPayload,
    ImportRowPayload,
    PreviewRequest,
    PreviewResponse,
)
from .translator import (
    parse_confirm_request,
    parse_preview_request,
    to_book_payload,
    to_import_result_payload,
    to_preview_response,
)

__all__ = [
    "ClassificationPayload",
    "ConfirmRequest",
    "ImportResultPayload",
    "ImportRowPayload",
    "PreviewRequest",
    "PreviewResponse",
    "parse_confirm_request",
    "parse_preview_request",
    "to_book_payload",
    "to_import_result_payload",
    "to_preview_response",
]
