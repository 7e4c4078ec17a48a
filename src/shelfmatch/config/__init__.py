"""Application configuration helpers."""

from __future__ import annotations

from .errors import ConfigurationError
from .logging import configure_logging
from .reconciliation import ReconciliationConfig, get_reconciliation_config
from .storage import DatabaseConfig, StorageConfig, get_database_config, get_storage_config

__all__ = [
    "ConfigurationError",
    "DatabaseConfig",
    "ReconciliationConfig",
    "StorageConfig",
    "configure_logging",
    "get_database_config",
    "get_reconciliation_config",
    "get_storage_config",
]
