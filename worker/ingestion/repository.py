"""
Ingestion persistence.
This module is where the SQL for the records table lives.
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from typing import Any

from core.db import Database, InvalidArgumentError, StoreError

logger = logging.getLogger(__name__)

TABLE_NAME = "public.characters"


@dataclass(frozen=True)
class StoredRow:
    id: int
    name: str
    data: dict[str, Any] | None


def _json_arg(value: dict[str, Any]) -> str:
    """
    asyncpg does not automatically encode Python dicts for json/jsonb parameters.
    We pass JSON as a string and cast to jsonb in SQL.
    """
    return json.dumps(value, ensure_ascii=True)


def _json_value(raw: Any) -> dict[str, Any] | None:
    # jsonb comes back as text unless a type codec is registered.
    if raw is None or isinstance(raw, dict):
        return raw
    return json.loads(raw)


def _row(record: dict[str, Any]) -> StoredRow:
    return StoredRow(
        id=int(record["id"]),
        name=str(record["name"]),
        data=_json_value(record.get("data")),
    )


class RecordStore:
    """
    One table of `(id, name, data)` rows on top of a connected `Database`.
    """

    def __init__(self, db: Database) -> None:
        self.db = db

    @property
    def is_ready(self) -> bool:
        return self.db.is_connected

    async def ensure_table(self) -> None:
        await self.db.execute(
            f"""
            CREATE TABLE IF NOT EXISTS {TABLE_NAME} (
              id BIGSERIAL PRIMARY KEY,
              name TEXT NOT NULL DEFAULT '',
              data JSONB
            )
            """
        )
        logger.info("table_ready table=%s", TABLE_NAME)

    async def insert(self, name: str, data: dict[str, Any]) -> StoredRow:
        """
        Insert one record and return the persisted row (with its new id).
        """
        if not isinstance(name, str) or not isinstance(data, dict):
            raise InvalidArgumentError(
                f"Invalid input data types: name={type(name).__name__} data={type(data).__name__}"
            )

        row = await self.db.fetch_one(
            f"""
            INSERT INTO {TABLE_NAME} (name, data)
            VALUES ($1, $2::jsonb)
            RETURNING id, name, data
            """,
            name,
            _json_arg(data),
        )
        if row is None or "id" not in row:
            raise StoreError("Failed to insert record.")
        return _row(row)

    async def count(self) -> int:
        row = await self.db.fetch_one(f"SELECT count(id) AS n FROM {TABLE_NAME}")
        n = int((row or {}).get("n", 0))
        logger.info("table_count table=%s rows=%s", TABLE_NAME, n)
        return n

    async def get_by_id(self, row_id: int) -> StoredRow | None:
        row = await self.db.fetch_one(
            f"""
            SELECT id, name, data
            FROM {TABLE_NAME}
            WHERE id = $1
            """,
            row_id,
        )
        return _row(row) if row is not None else None

    async def clear(self) -> None:
        await self.db.execute(f"DELETE FROM {TABLE_NAME}")
        logger.info("table_cleared table=%s", TABLE_NAME)
