"""Shared helpers for tests.

- `FakePool`: in-memory stand-in for an asyncpg pool, understanding only the
  statements the worker issues against the records table.
- `FakeCollectionClient`: serves canned page envelopes by page number.
- `make_page`: builds an envelope shaped like the live API's.
"""

from __future__ import annotations

import asyncio
import json
from typing import Any

import asyncpg

from core.rickmorty import RemoteError, ResourceKind

__all__ = [
    "FakePool",
    "FakeCollectionClient",
    "make_page",
]


def _normalize(sql: str) -> str:
    return " ".join(sql.split())


class FakePool:
    def __init__(self) -> None:
        self.rows: list[dict[str, Any]] = []
        self.tables: set[str] = set()
        self.ddl_calls = 0
        self.insert_attempts = 0
        self.in_flight = 0
        self.max_in_flight = 0
        self.fail_names: set[str] = set()
        self.fail_on_close = False
        self.closed = False
        self.terminated = False
        self.connect_kwargs: dict[str, Any] = {}
        self._next_id = 1

    async def execute(self, sql: str, *args: Any) -> str:
        text = _normalize(sql)
        if text.startswith("CREATE TABLE IF NOT EXISTS public.characters"):
            self.ddl_calls += 1
            self.tables.add("public.characters")
            return "CREATE TABLE"
        if text.startswith("DELETE FROM public.characters"):
            n = len(self.rows)
            self.rows.clear()
            return f"DELETE {n}"
        raise AssertionError(f"unexpected statement: {text}")

    async def fetchrow(self, sql: str, *args: Any) -> dict[str, Any] | None:
        text = _normalize(sql)
        if text.startswith("INSERT INTO public.characters"):
            return await self._insert(*args)
        if text.startswith("SELECT count(id)"):
            return {"n": len(self.rows)}
        if text.startswith("SELECT id, name, data FROM public.characters WHERE id = $1"):
            (row_id,) = args
            for row in self.rows:
                if row["id"] == row_id:
                    return dict(row)
            return None
        raise AssertionError(f"unexpected query: {text}")

    async def fetchval(self, sql: str, *args: Any) -> Any:
        if _normalize(sql) == "SELECT version()":
            return "PostgreSQL 16.2 (fake)"
        raise AssertionError(f"unexpected query: {_normalize(sql)}")

    async def close(self) -> None:
        if self.fail_on_close:
            raise OSError("socket already closed")
        self.closed = True

    def terminate(self) -> None:
        self.terminated = True

    async def _insert(self, name: str, data: str) -> dict[str, Any]:
        self.insert_attempts += 1
        self.in_flight += 1
        self.max_in_flight = max(self.max_in_flight, self.in_flight)
        try:
            # Yield so sibling inserts of the same batch overlap.
            await asyncio.sleep(0)
            if name in self.fail_names:
                raise asyncpg.InterfaceError(f"insert rejected for {name}")
            # Round-trip through JSON text the way jsonb comes back from asyncpg.
            row = {"id": self._next_id, "name": name, "data": json.dumps(json.loads(data))}
            self._next_id += 1
            self.rows.append(row)
            return dict(row)
        finally:
            self.in_flight -= 1


def make_page(
    names: list[str | None],
    *,
    count: int,
    next_url: str | None,
    start_id: int = 1,
) -> dict[str, Any]:
    results = []
    for offset, name in enumerate(names):
        item: dict[str, Any] = {
            "id": start_id + offset,
            "status": "Alive",
            "species": "Human",
            "episode": ["https://rickandmortyapi.com/api/episode/1"],
        }
        if name is not None:
            item["name"] = name
        results.append(item)
    return {
        "info": {"count": count, "pages": None, "next": next_url, "prev": None},
        "results": results,
    }


class FakeCollectionClient:
    """
    `pages` maps page number -> envelope dict, or an exception to raise.
    """

    def __init__(self, pages: dict[int, Any]) -> None:
        self.pages = pages
        self.calls: list[tuple[ResourceKind, int]] = []

    async def __aenter__(self) -> FakeCollectionClient:
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        return None

    @property
    def requested_pages(self) -> list[int]:
        return [number for (_, number) in self.calls]

    async def get_page(self, kind: ResourceKind, number: int) -> dict[str, Any]:
        self.calls.append((kind, number))
        if number not in self.pages:
            raise RemoteError("There is nothing here", status_code=404)
        page = self.pages[number]
        if isinstance(page, BaseException):
            raise page
        return page
