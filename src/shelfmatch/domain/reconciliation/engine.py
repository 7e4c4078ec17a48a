"""Orchestrator for book import reconciliation.

Preview and confirm are independent calls. Nothing is remembered between them:
the caller sends the preview's classifications back together with the decisions.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING

from .apply import apply_classifications
from .classify import DEFAULT_SIMILARITY_THRESHOLD, classify, ensure_batch
from .similarity import token_overlap

if TYPE_CHECKING:
    from collections.abc import Sequence

    from shelfmatch.domain.model import ImportRecord
    from shelfmatch.domain.ports import BookStore

    from .apply import ImportResult
    from .contracts import Classification, DecisionsByKey
    from .similarity import Similarity


@dataclass(slots=True)
class BookImportEngine:
    """Run preview/confirm for one book store."""

    store: BookStore
    threshold: float = DEFAULT_SIMILARITY_THRESHOLD
    similarity: Similarity = token_overlap
    timeout: float | None = None
    max_workers: int = 1

    def preview(self, records: Sequence[ImportRecord]) -> list[Classification]:
        """Classify ``records`` against the current library; never writes."""

        ensure_batch(records)
        return classify(
            records,
            self.store.list_all(),
            threshold=self.threshold,
            similarity=self.similarity,
        )

    def confirm(
        self,
        classifications: Sequence[Classification],
        decisions: DecisionsByKey,
    ) -> ImportResult:
        """Apply reviewed ``classifications`` and return the per-record tally."""

        return apply_classifications(
            classifications,
            decisions,
            self.store,
            timeout=self.timeout,
            max_workers=self.max_workers,
        )
