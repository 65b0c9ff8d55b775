"""
Worker entrypoint: ingest every character into Postgres once, then exit.
"""

from __future__ import annotations

import asyncio
import logging
import sys

from core import settings
from core.db import Database
from core.rickmorty import ResourceKind, RickAndMortyClient
from ingestion import service
from ingestion.repository import RecordStore

logger = logging.getLogger(__name__)


async def main() -> service.IngestionResult:
    db = Database(settings.database_settings())
    try:
        await db.connect()
        await db.server_version()

        store = RecordStore(db)
        await store.ensure_table()
        await store.count()

        async with RickAndMortyClient.from_settings(settings.api_settings()) as client:
            result = await service.ingest_collection(store, client, kind=ResourceKind.CHARACTER)

        await store.count()
        return result
    finally:
        await db.close()


def run() -> int:
    settings.load_env()
    settings.configure_logging()
    try:
        result = asyncio.run(main())
    except Exception:
        logger.exception("ingestion_run_failed")
        return 1
    if not result.completed:
        logger.warning("ingestion_stopped_early page=%s", result.failed_page)
    return 0


if __name__ == "__main__":
    sys.exit(run())
