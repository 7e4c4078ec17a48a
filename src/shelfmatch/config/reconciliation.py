"""Book import reconciliation defaults."""

from __future__ import annotations

from dataclasses import dataclass

from .env import optional_env_float, optional_env_int
from .errors import ConfigurationError

DEFAULT_SIMILARITY_THRESHOLD = 0.6
DEFAULT_STORE_TIMEOUT_SECONDS = 10.0
DEFAULT_MAX_WORKERS = 1


@dataclass(frozen=True, slots=True)
class ReconciliationConfig:
    similarity_threshold: float = DEFAULT_SIMILARITY_THRESHOLD
    store_timeout_seconds: float = DEFAULT_STORE_TIMEOUT_SECONDS
    max_workers: int = DEFAULT_MAX_WORKERS

    def __post_init__(self) -> None:
        if not 0.0 < self.similarity_threshold <= 1.0:
            raise ConfigurationError(
                f"Similarity threshold must be in (0, 1], got {self.similarity_threshold}"
            )
        if self.store_timeout_seconds <= 0:
            raise ConfigurationError(
                f"Store timeout must be positive, got {self.store_timeout_seconds}"
            )
        if self.max_workers < 1:
            raise ConfigurationError(f"Max workers must be at least 1, got {self.max_workers}")


def get_reconciliation_config() -> ReconciliationConfig:
    return ReconciliationConfig(
        similarity_threshold=optional_env_float(
            "SHELFMATCH_SIMILARITY_THRESHOLD", DEFAULT_SIMILARITY_THRESHOLD
        ),
        store_timeout_seconds=optional_env_float(
            "SHELFMATCH_STORE_TIMEOUT", DEFAULT_STORE_TIMEOUT_SECONDS
        ),
        max_workers=optional_env_int("SHELFMATCH_MAX_WORKERS", DEFAULT_MAX_WORKERS),
    )
