"""Application orchestration entry points."""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import replace
from logging import getLogger
from typing import TYPE_CHECKING

from shelfmatch.adapters.payloads import (
    parse_confirm_request,
    parse_preview_request,
    to_preview_response,
)
from shelfmatch.adapters.sqlalchemy.repositories import SqlAlchemyBookStore
from shelfmatch.adapters.sqlalchemy.unit_of_work import (
    SqlAlchemyBookUnitOfWork,
    is_started,
    startup,
)
from shelfmatch.config import get_reconciliation_config
from shelfmatch.domain.ports.unit_of_work import BookUnitOfWork
from shelfmatch.domain.reconciliation import BookImportEngine

if TYPE_CHECKING:
    from shelfmatch.adapters.payloads import PreviewResponse
    from shelfmatch.config import ReconciliationConfig
    from shelfmatch.domain.model import LibraryBook
    from shelfmatch.domain.ports import BookStore
    from shelfmatch.domain.reconciliation import ImportResult

UnitOfWorkFactory = Callable[[], BookUnitOfWork]


log = getLogger(__name__)


def _resolve_factory(unit_of_work_factory: UnitOfWorkFactory | None) -> UnitOfWorkFactory:
    if unit_of_work_factory is not None:
        return unit_of_work_factory
    if not is_started():
        startup()
    return SqlAlchemyBookUnitOfWork


def resolve_reconciliation_config(
    config: ReconciliationConfig | None = None,
    *,
    threshold: float | None = None,
) -> ReconciliationConfig:
    """Return ``config`` (or the environment's) with an optional threshold override."""

    effective = config or get_reconciliation_config()
    if threshold is not None:
        effective = replace(effective, similarity_threshold=threshold)
    return effective


def _write_workers(store: BookStore, config: ReconciliationConfig) -> int:
    # a SQLAlchemy session (and its pysqlite connection) belongs to one thread
    if isinstance(store, SqlAlchemyBookStore) and config.max_workers > 1:
        log.warning(
            "Ignoring max_workers=%s: the SQL book store writes on the calling thread",
            config.max_workers,
        )
        return 1
    return config.max_workers


def _build_engine(store: BookStore, config: ReconciliationConfig) -> BookImportEngine:
    return BookImportEngine(
        store=store,
        threshold=config.similarity_threshold,
        timeout=config.store_timeout_seconds,
        max_workers=_write_workers(store, config),
    )


def preview_book_import(
    rows: object,
    *,
    unit_of_work_factory: UnitOfWorkFactory | None = None,
    config: ReconciliationConfig | None = None,
    threshold: float | None = None,
) -> PreviewResponse:
    """Classify an import batch against the library without writing anything."""

    records = parse_preview_request(rows)
    effective_config = resolve_reconciliation_config(config, threshold=threshold)
    effective_uow = _resolve_factory(unit_of_work_factory)
    log.info(
        "Starting book import preview: records=%s, threshold=%s",
        len(records),
        effective_config.similarity_threshold,
    )

    with effective_uow() as uow:
        engine = _build_engine(uow.repositories.books, effective_config)
        classifications = engine.preview(records)

    response = to_preview_response(classifications)
    log.info(
        "Finished book import preview: %s",
        ", ".join(f"{kind}={count}" for kind, count in response.summary.items()),
    )
    return response


def confirm_book_import(
    payload: object,
    *,
    unit_of_work_factory: UnitOfWorkFactory | None = None,
    config: ReconciliationConfig | None = None,
) -> ImportResult:
    """Apply a reviewed preview (classifications plus decisions) to the library."""

    classifications, decisions = parse_confirm_request(payload)
    effective_config = resolve_reconciliation_config(config)
    effective_uow = _resolve_factory(unit_of_work_factory)
    log.info(
        "Starting book import confirm: classifications=%s, decisions=%s",
        len(classifications),
        len(decisions),
    )

    with effective_uow() as uow:
        engine = _build_engine(uow.repositories.books, effective_config)
        result = engine.confirm(classifications, decisions)
        uow.commit()

    log.info(
        f"Finished book import confirm: linked={result.linked}, created={result.created}, "
        f"updated={result.updated}, failed={result.failed}, skipped={result.skipped}"
    )
    return result


def list_library_books(
    *,
    unit_of_work_factory: UnitOfWorkFactory | None = None,
) -> list[LibraryBook]:
    effective_uow = _resolve_factory(unit_of_work_factory)
    with effective_uow() as uow:
        return list(uow.repositories.books.list_all())
