"""
Ingestion "service layer".

Walks one paged collection of the remote API, page by page, and stores every
record of a page through `RecordStore`. Inserts of a single page run
concurrently; pages never overlap.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass

from pydantic import ValidationError

from core.db import InvalidArgumentError
from core.rickmorty import RemoteError, ResourceKind, RickAndMortyClient

from .repository import RecordStore
from .schemas import Page

INITIAL_PAGE = 1

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class IngestionResult:
    """
    Outcome of one ingestion run.

    `items_submitted` counts every item handed to the store, including items
    of a page whose batch failed. `items_stored` counts acknowledged inserts.
    The two differ only when the run stopped on an insert failure.
    """

    kind: ResourceKind
    total_count: int
    pages_processed: int
    items_submitted: int
    items_stored: int
    failed_page: int | None = None
    error: BaseException | None = None

    @property
    def completed(self) -> bool:
        return self.error is None


async def fetch_page(client: RickAndMortyClient, kind: ResourceKind, number: int) -> Page:
    data = await client.get_page(kind, number)
    try:
        return Page.model_validate(data)
    except ValidationError as exc:
        raise RemoteError(f"Malformed {kind.value} page {number}: {exc}") from exc


async def ingest_collection(
    store: RecordStore,
    client: RickAndMortyClient,
    *,
    kind: ResourceKind = ResourceKind.CHARACTER,
) -> IngestionResult:
    """
    Fetch every page of `kind` and insert each record into `store`.

    Stops at the last page (`info.next` is null) or at the first page whose
    fetch or inserts fail. Such a failure is logged and returned in the
    result, never raised. Rows inserted before the failure are kept.
    """
    if not isinstance(store, RecordStore) or not store.is_ready:
        raise InvalidArgumentError("Invalid parameter: store must be a connected RecordStore.")

    total_count = 0
    pages_processed = 0
    items_submitted = 0
    items_stored = 0
    failed_page: int | None = None
    error: BaseException | None = None

    page = INITIAL_PAGE
    has_next_page = True

    while has_next_page:
        try:
            envelope = await fetch_page(client, kind, page)
        except Exception as exc:
            logger.error("page_fetch_failed kind=%s page=%s error=%s", kind.value, page, exc)
            failed_page, error = page, exc
            break

        if page == INITIAL_PAGE:
            total_count = envelope.info.count
            logger.info("collection_total kind=%s count=%s", kind.value, total_count)

        items = envelope.results
        outcomes = await asyncio.gather(
            *(store.insert(item.get("name"), item) for item in items),
            return_exceptions=True,
        )
        failures = [o for o in outcomes if isinstance(o, BaseException)]

        pages_processed += 1
        items_submitted += len(items)
        items_stored += len(outcomes) - len(failures)

        if failures:
            for exc in failures:
                logger.error(
                    "page_store_failed kind=%s page=%s error=%s",
                    kind.value,
                    page,
                    exc,
                    exc_info=exc,
                )
            logger.error(
                "page_store_summary kind=%s page=%s failed=%s submitted=%s",
                kind.value,
                page,
                len(failures),
                len(items),
            )
            failed_page, error = page, failures[0]
            break

        has_next_page = envelope.has_next
        page += 1

    result = IngestionResult(
        kind=kind,
        total_count=total_count,
        pages_processed=pages_processed,
        items_submitted=items_submitted,
        items_stored=items_stored,
        failed_page=failed_page,
        error=error,
    )
    logger.info(
        "ingestion_summary kind=%s total=%s submitted=%s stored=%s completed=%s",
        kind.value,
        result.total_count,
        result.items_submitted,
        result.items_stored,
        result.completed,
    )
    return result
