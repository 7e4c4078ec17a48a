"""Domain port definitions for adapters."""

from __future__ import annotations

from .book_store import BookStore
from .unit_of_work import BookRepositories, BookUnitOfWork, RepositoryCollection, UnitOfWork

__all__ = [
    "BookRepositories",
    "BookStore",
    "BookUnitOfWork",
    "RepositoryCollection",
    "UnitOfWork",
]
