"""
Async database access helpers (raw SQL) using asyncpg.

`Database` owns the connection pool. FastAPI creates it on startup, keeps it
on `app.state.db` and closes it on shutdown (see `api/main.py`). Request
handlers receive it through `core.dependencies.get_database` and pass it
down explicitly, so tests can swap in a fake.

SQL parameter style:
- asyncpg uses positional placeholders: $1, $2, $3, ...
"""

from __future__ import annotations

import logging
from collections.abc import Iterator
from contextlib import contextmanager
from typing import Any

import asyncpg

from . import settings
from .errors import StoreError

logger = logging.getLogger(__name__)


def _record_to_dict(record: asyncpg.Record) -> dict[str, Any]:
    return dict(record)


@contextmanager
def _store_errors(sql: str) -> Iterator[None]:
    try:
        yield
    except (asyncpg.PostgresError, asyncpg.InterfaceError) as exc:
        logger.error("query_failed error=%s sql=%s", exc, " ".join(sql.split())[:200])
        raise StoreError(str(exc)) from exc


class Database:
    def __init__(self, pool: asyncpg.Pool) -> None:
        self._pool = pool

    async def fetch_one(self, sql: str, *args: Any) -> dict[str, Any] | None:
        """
        Run a query and return a single row as a dict (or None).
        """
        with _store_errors(sql):
            row = await self._pool.fetchrow(sql, *args)
        return _record_to_dict(row) if row is not None else None

    async def fetch_all(self, sql: str, *args: Any) -> list[dict[str, Any]]:
        """
        Run a query and return all rows as a list of dicts.
        """
        with _store_errors(sql):
            rows = await self._pool.fetch(sql, *args)
        return [_record_to_dict(r) for r in rows]

    async def fetch_val(self, sql: str, *args: Any) -> Any:
        """
        Run a query and return the first column of the first row.
        """
        with _store_errors(sql):
            return await self._pool.fetchval(sql, *args)

    async def execute(self, sql: str, *args: Any) -> None:
        """
        Run a statement (INSERT/UPDATE/DELETE/DDL). No result returned.
        """
        with _store_errors(sql):
            await self._pool.execute(sql, *args)

    async def close(self) -> None:
        await self._pool.close()


async def connect(dsn: str | None = None) -> Database:
    pool = await asyncpg.create_pool(
        dsn=dsn or settings.database_url(),
        min_size=settings.pool_min_size(),
        max_size=settings.pool_max_size(),
        command_timeout=settings.command_timeout(),
    )
    return Database(pool)


async def check_connection(database: Database) -> None:
    """
    Startup check: one round-trip to the store.
    """
    await database.fetch_val("SELECT now()")
