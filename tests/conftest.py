from __future__ import annotations

import pytest

import core.db as db_module
from core.db import Database
from core.settings import DatabaseSettings
from ingestion.repository import RecordStore
from tests.common import FakePool


@pytest.fixture()
def db_settings() -> DatabaseSettings:
    return DatabaseSettings(
        host="db.test",
        port=5432,
        name="ram",
        user="ingest",
        password="s3cret",
        ssl_root_cert="/nonexistent/root.crt",
    )


@pytest.fixture()
def fake_pool(monkeypatch) -> FakePool:
    """Replace asyncpg.create_pool (and CA loading) with an in-memory pool."""

    pool = FakePool()

    async def create_pool(**kwargs):
        pool.connect_kwargs = kwargs
        return pool

    monkeypatch.setattr(db_module.asyncpg, "create_pool", create_pool)
    monkeypatch.setattr(db_module, "_ssl_context", lambda cafile: None)
    return pool


@pytest.fixture()
def store_factory(db_settings, fake_pool):
    """Async factory returning a RecordStore on a connected fake database."""

    async def make() -> RecordStore:
        db = Database(db_settings)
        await db.connect()
        store = RecordStore(db)
        await store.ensure_table()
        return store

    return make
