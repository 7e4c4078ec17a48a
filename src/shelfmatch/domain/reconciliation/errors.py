"""Error taxonomy for book import reconciliation."""

from __future__ import annotations


class ReconciliationError(Exception):
    """Base class for import reconciliation failures."""


class ValidationError(ReconciliationError):
    """Raised when one import record is unusable (for example, a blank title)."""


class MalformedBatchError(ValidationError):
    """Raised when a whole batch is structurally invalid before any processing."""


class NotFoundError(ReconciliationError):
    """Raised when a referenced library book no longer exists."""

    def __init__(self, book_id: str) -> None:
        super().__init__(f"Book {book_id!r} not found")
        self.book_id = book_id


class StoreError(ReconciliationError):
    """Raised when the book store fails to persist a change."""
