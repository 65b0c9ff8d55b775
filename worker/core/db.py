"""
Async database access helpers (raw SQL) using asyncpg.

`Database` owns the connection pool. `main.py` connects it before any query
and closes it on every exit path.

The pool is what makes concurrent inserts safe: each in-flight statement
acquires its own connection, and callers beyond `pool_max_size` wait for one
to be released.

SQL parameter style:
- asyncpg uses positional placeholders: $1, $2, $3, ...
"""

from __future__ import annotations

import asyncio
import logging
import ssl
from typing import Any
from urllib.parse import parse_qsl, urlencode, urlsplit, urlunsplit

import asyncpg

from .settings import DatabaseSettings

logger = logging.getLogger(__name__)

# Driver-level failures we translate into StoreError.
_DRIVER_ERRORS = (asyncpg.PostgresError, asyncpg.InterfaceError, asyncio.TimeoutError)


class InvalidArgumentError(ValueError):
    pass


class StoreError(RuntimeError):
    pass


# Connect/close failures. Fatal to a run.
class DatabaseConnectionError(ConnectionError):
    pass


def _sanitize_database_url(url: str) -> str:
    """
    Drop `sslmode` from the query string; TLS is configured via `ssl=`.
    """
    parts = urlsplit(url)
    if not parts.query:
        return url

    params = [(k, v) for (k, v) in parse_qsl(parts.query, keep_blank_values=True) if k != "sslmode"]
    query = urlencode(params)
    return urlunsplit((parts.scheme, parts.netloc, parts.path, query, parts.fragment))


def _dsn_target(dsn: str) -> tuple[str, int | None, str]:
    """
    (host, port, database) of the server a DSN points at, for log lines.
    """
    parts = urlsplit(dsn)
    return parts.hostname or "", parts.port, parts.path.lstrip("/")


def _ssl_context(cafile: str) -> ssl.SSLContext:
    """
    Verified TLS: the server certificate must chain to `cafile`.
    """
    ctx = ssl.create_default_context(cafile=cafile)
    ctx.check_hostname = True
    ctx.verify_mode = ssl.CERT_REQUIRED
    return ctx


def _record_to_dict(record: asyncpg.Record) -> dict[str, Any]:
    return dict(record)


class Database:
    def __init__(self, settings: DatabaseSettings) -> None:
        self.settings = settings
        self._pool: asyncpg.Pool | None = None

    @property
    def is_connected(self) -> bool:
        return self._pool is not None

    async def connect(self) -> None:
        if self._pool is not None:
            return None

        try:
            ssl_ctx = _ssl_context(self.settings.ssl_root_cert)
        except (OSError, ssl.SSLError) as exc:
            logger.error("db_connect_failed reason=ssl_root_cert path=%s", self.settings.ssl_root_cert)
            raise DatabaseConnectionError(
                f"Cannot load CA certificate from {self.settings.ssl_root_cert}: {exc}"
            ) from exc

        dsn = _sanitize_database_url(self.settings.dsn())
        host, port, name = _dsn_target(dsn)
        try:
            self._pool = await asyncpg.create_pool(
                dsn=dsn,
                ssl=ssl_ctx,
                min_size=1,
                max_size=self.settings.pool_max_size,
                command_timeout=self.settings.command_timeout_s,
            )
        except (OSError, *_DRIVER_ERRORS) as exc:
            logger.error(
                "db_connect_failed host=%s port=%s db=%s error=%s",
                host,
                port,
                name,
                exc,
            )
            raise DatabaseConnectionError(f"Could not connect to the database: {exc}") from exc

        logger.info("db_connected host=%s port=%s db=%s", host, port, name)

    async def close(self) -> None:
        if self._pool is None:
            return None
        pool, self._pool = self._pool, None
        try:
            await pool.close()
        except (OSError, *_DRIVER_ERRORS) as exc:
            logger.error("db_close_failed error=%s", exc)
            pool.terminate()
            raise DatabaseConnectionError(f"Error closing the database pool: {exc}") from exc
        logger.info("db_closed")

    def pool(self) -> asyncpg.Pool:
        if self._pool is None:
            raise DatabaseConnectionError("DB pool is not initialized. Call connect() first.")
        return self._pool

    async def fetch_one(self, sql: str, *args: Any) -> dict[str, Any] | None:
        """
        Run a query and return a single row as a dict (or None).
        """
        try:
            row = await self.pool().fetchrow(sql, *args)
        except _DRIVER_ERRORS as exc:
            raise StoreError(f"Query failed: {exc}") from exc
        return _record_to_dict(row) if row is not None else None

    async def fetch_value(self, sql: str, *args: Any) -> Any:
        try:
            return await self.pool().fetchval(sql, *args)
        except _DRIVER_ERRORS as exc:
            raise StoreError(f"Query failed: {exc}") from exc

    async def execute(self, sql: str, *args: Any) -> None:
        """
        Run a statement (INSERT/UPDATE/DELETE/DDL). No result returned.
        """
        try:
            await self.pool().execute(sql, *args)
        except _DRIVER_ERRORS as exc:
            raise StoreError(f"Statement failed: {exc}") from exc

    async def server_version(self) -> str:
        version = await self.fetch_value("SELECT version()")
        logger.info("db_version version=%s", version)
        return str(version)
