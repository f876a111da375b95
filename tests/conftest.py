"""
Shared fixtures.

Unit tests never touch Postgres: the HTTP and service layers run against
`InMemoryHierarchyStore`, which stands in for `hierarchies.repository`, and
repository tests use `RecordingDatabase` to inspect the SQL they send.
Integration tests (tests/test_integration.py) need TEST_DATABASE_URL.
"""

from __future__ import annotations

import copy
import itertools
from datetime import datetime, timedelta, timezone
from typing import Any

import pytest
from fastapi.testclient import TestClient

from core.dependencies import get_database
from core.errors import StoreError
from hierarchies import repository

BASE_TIME = datetime(2024, 1, 1, tzinfo=timezone.utc)


class RecordingDatabase:
    """
    Captures every statement and returns canned results.
    """

    def __init__(
        self,
        *,
        one: dict[str, Any] | None = None,
        rows: list[dict[str, Any]] | None = None,
        val: Any = None,
    ) -> None:
        self.one = one
        self.rows = rows or []
        self.val = val
        self.calls: list[tuple[str, str, tuple[Any, ...]]] = []

    async def fetch_one(self, sql: str, *args: Any) -> dict[str, Any] | None:
        self.calls.append(("fetch_one", sql, args))
        return copy.deepcopy(self.one)

    async def fetch_all(self, sql: str, *args: Any) -> list[dict[str, Any]]:
        self.calls.append(("fetch_all", sql, args))
        return copy.deepcopy(self.rows)

    async def fetch_val(self, sql: str, *args: Any) -> Any:
        self.calls.append(("fetch_val", sql, args))
        return self.val

    async def execute(self, sql: str, *args: Any) -> None:
        self.calls.append(("execute", sql, args))


class InMemoryHierarchyStore:
    """
    Dict-backed replacement for the repository functions.

    Mirrors the store's behavior that matters to callers: generated ids,
    increasing timestamps, newest-first ordering, cascade delete and the
    foreign key on hierarchy_data.metadata_id.
    """

    def __init__(self) -> None:
        self.metadata: dict[int, dict[str, Any]] = {}
        self.data: dict[int, dict[str, Any]] = {}
        self._ids = itertools.count(1)
        self._ticks = itertools.count(1)

    def _now(self) -> datetime:
        return BASE_TIME + timedelta(seconds=next(self._ticks))

    async def create_metadata(
        self,
        database: Any,
        *,
        user_input: Any,
        version: str = "v0",
        status: str = "in-draft",
        user_feedback: str | None = None,
    ) -> dict[str, Any]:
        now = self._now()
        row = {
            "id": next(self._ids),
            "user_input": copy.deepcopy(repository.parse_document(user_input, field="userInput")),
            "version": version,
            "status": status,
            "user_feedback": user_feedback,
            "created_at": now,
            "updated_at": now,
        }
        self.metadata[row["id"]] = row
        return copy.deepcopy(row)

    async def create_data(self, database: Any, metadata_id: int, data: Any) -> dict[str, Any]:
        document = repository.parse_document(data, field="data")
        if metadata_id not in self.metadata:
            raise StoreError('insert or update on table "hierarchy_data" violates foreign key constraint')
        row = {
            "id": next(self._ids),
            "metadata_id": metadata_id,
            "data": copy.deepcopy(document),
            "created_at": self._now(),
        }
        self.data[row["id"]] = row
        return copy.deepcopy(row)

    async def get_metadata_by_id(self, database: Any, metadata_id: int) -> dict[str, Any] | None:
        row = self.metadata.get(metadata_id)
        return copy.deepcopy(row) if row is not None else None

    async def get_data_by_metadata_id(self, database: Any, metadata_id: int) -> list[dict[str, Any]]:
        rows = [row for row in self.data.values() if row["metadata_id"] == metadata_id]
        rows.sort(key=lambda r: (r["created_at"], r["id"]), reverse=True)
        return copy.deepcopy(rows)

    async def update_metadata(self, database: Any, metadata_id: int, updates: Any) -> dict[str, Any] | None:
        fields = repository.metadata_update_fields(updates)
        row = self.metadata.get(metadata_id)
        if row is None:
            return None
        row.update(fields)
        row["updated_at"] = self._now()
        return copy.deepcopy(row)

    async def list_metadata(
        self,
        database: Any,
        *,
        status: str | None = None,
        version: str | None = None,
        limit: int = 10,
        offset: int = 0,
    ) -> dict[str, Any]:
        filters = repository.metadata_filters(status=status, version=version)
        matching = [
            row
            for row in self.metadata.values()
            if all(row[name] == value for name, value in filters.items())
        ]
        matching.sort(key=lambda r: (r["created_at"], r["id"]), reverse=True)
        return {
            "items": copy.deepcopy(matching[offset : offset + limit]),
            "total": len(matching),
            "limit": limit,
            "offset": offset,
        }

    async def delete_metadata(self, database: Any, metadata_id: int) -> dict[str, Any] | None:
        row = self.metadata.pop(metadata_id, None)
        if row is None:
            return None
        for data_id in [k for k, v in self.data.items() if v["metadata_id"] == metadata_id]:
            del self.data[data_id]
        return copy.deepcopy(row)


REPOSITORY_FUNCTIONS = (
    "create_metadata",
    "create_data",
    "get_metadata_by_id",
    "get_data_by_metadata_id",
    "update_metadata",
    "list_metadata",
    "delete_metadata",
)


@pytest.fixture
def store(monkeypatch: pytest.MonkeyPatch) -> InMemoryHierarchyStore:
    fake = InMemoryHierarchyStore()
    for name in REPOSITORY_FUNCTIONS:
        monkeypatch.setattr(repository, name, getattr(fake, name))
    return fake


@pytest.fixture
def database() -> RecordingDatabase:
    return RecordingDatabase()


@pytest.fixture
def client(store: InMemoryHierarchyStore, database: RecordingDatabase):
    from main import app

    # No `with` block: the lifespan (and its real pool) never runs.
    app.dependency_overrides[get_database] = lambda: database
    try:
        yield TestClient(app)
    finally:
        app.dependency_overrides.clear()


def valid_payload(**overrides: Any) -> dict[str, Any]:
    payload: dict[str, Any] = {
        "userInput": {"company": "Acme", "location": "Berlin", "industry": "logistics"},
        "data": {"root": {"name": "CEO", "children": [{"name": "CTO", "children": []}]}},
    }
    payload.update(overrides)
    return payload
