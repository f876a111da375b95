"""
Hierarchy persistence.
This module is where hierarchy-related SQL lives.

Tables (see db/schema.sql):
- hierarchy_metadata(id, user_input jsonb, version, status, user_feedback, created_at, updated_at)
- hierarchy_data(id, metadata_id -> hierarchy_metadata.id ON DELETE CASCADE, data jsonb, created_at)
"""

from __future__ import annotations

import asyncio
import json
import logging
from collections.abc import Mapping
from typing import Any

from core import sql
from core.db import Database
from core.errors import ParseError, ValidationError

from .schemas import DEFAULT_STATUS, DEFAULT_VERSION, Document

logger = logging.getLogger(__name__)

METADATA_COLUMNS = "id, user_input, version, status, user_feedback, created_at, updated_at"
DATA_COLUMNS = "id, metadata_id, data, created_at"


def parse_document(value: Document, *, field: str = "document") -> Document:
    """
    Accept a document either as a Python value or as JSON text.
    """
    if isinstance(value, (bytes, bytearray)):
        value = value.decode("utf-8")
    if not isinstance(value, str):
        return value
    try:
        return json.loads(value)
    except json.JSONDecodeError as exc:
        raise ParseError(f"{field} is not valid JSON: {exc.msg}") from exc


def _json_arg(value: Document) -> str:
    """
    asyncpg does not automatically encode Python values for json/jsonb parameters.
    We pass JSON as a string and cast to jsonb in SQL.
    """
    return json.dumps(value, ensure_ascii=True)


def _json_value(raw: Any) -> Document:
    # asyncpg hands jsonb columns back as text.
    if isinstance(raw, str):
        return json.loads(raw)
    return raw


def _metadata_row(row: dict[str, Any] | None) -> dict[str, Any] | None:
    if row is None:
        return None
    row["user_input"] = _json_value(row.get("user_input"))
    return row


def _data_row(row: dict[str, Any] | None) -> dict[str, Any] | None:
    if row is None:
        return None
    row["data"] = _json_value(row.get("data"))
    return row


def metadata_update_fields(updates: Mapping[str, Any]) -> dict[str, Any]:
    """
    Pick the columns an update actually touches.

    `status` and `version` count only when non-empty; `user_feedback` counts
    whenever the key is present, so an explicit None clears it.
    """
    fields: dict[str, Any] = {}
    if updates.get("status"):
        fields["status"] = str(updates["status"])
    if "user_feedback" in updates:
        fields["user_feedback"] = updates["user_feedback"]
    if updates.get("version"):
        fields["version"] = str(updates["version"])
    if not fields:
        raise ValidationError("No valid fields to update")
    return fields


def metadata_filters(*, status: str | None = None, version: str | None = None) -> dict[str, Any]:
    filters: dict[str, Any] = {}
    if status:
        filters["status"] = status
    if version:
        filters["version"] = version
    return filters


async def create_metadata(
    database: Database,
    *,
    user_input: Document,
    version: str = DEFAULT_VERSION,
    status: str = DEFAULT_STATUS,
    user_feedback: str | None = None,
) -> dict[str, Any]:
    document = parse_document(user_input, field="userInput")
    try:
        row = await database.fetch_one(
            f"""
            INSERT INTO hierarchy_metadata (user_input, version, status, user_feedback)
            VALUES ($1::jsonb, $2, $3, $4)
            RETURNING {METADATA_COLUMNS}
            """,
            _json_arg(document),
            version,
            status,
            user_feedback,
        )
    except Exception:
        logger.exception("create_metadata_failed user_input=%s", document)
        raise
    if row is None:
        raise RuntimeError("Failed to insert hierarchy metadata.")
    return _metadata_row(row)


async def create_data(database: Database, metadata_id: int, data: Document) -> dict[str, Any]:
    document = parse_document(data, field="data")
    try:
        row = await database.fetch_one(
            f"""
            INSERT INTO hierarchy_data (metadata_id, data)
            VALUES ($1, $2::jsonb)
            RETURNING {DATA_COLUMNS}
            """,
            metadata_id,
            _json_arg(document),
        )
    except Exception:
        logger.exception("create_data_failed metadata_id=%s", metadata_id)
        raise
    if row is None:
        raise RuntimeError("Failed to insert hierarchy data.")
    return _data_row(row)


async def get_metadata_by_id(database: Database, metadata_id: int) -> dict[str, Any] | None:
    row = await database.fetch_one(
        f"""
        SELECT {METADATA_COLUMNS}
        FROM hierarchy_metadata
        WHERE id = $1
        """,
        metadata_id,
    )
    return _metadata_row(row)


async def get_data_by_metadata_id(database: Database, metadata_id: int) -> list[dict[str, Any]]:
    """
    All data rows for one metadata row, newest first.
    """
    rows = await database.fetch_all(
        f"""
        SELECT {DATA_COLUMNS}
        FROM hierarchy_data
        WHERE metadata_id = $1
        ORDER BY created_at DESC, id DESC
        """,
        metadata_id,
    )
    return [_data_row(row) for row in rows]


async def update_metadata(
    database: Database,
    metadata_id: int,
    updates: Mapping[str, Any],
) -> dict[str, Any] | None:
    """
    Update only the supplied fields. Returns None when the row does not exist.
    """
    fields = metadata_update_fields(updates)
    set_clause, args = sql.assignments(fields, start=2)
    row = await database.fetch_one(
        f"""
        UPDATE hierarchy_metadata
        SET {set_clause}, updated_at = now()
        WHERE id = $1
        RETURNING {METADATA_COLUMNS}
        """,
        metadata_id,
        *args,
    )
    return _metadata_row(row)


async def list_metadata(
    database: Database,
    *,
    status: str | None = None,
    version: str | None = None,
    limit: int = 10,
    offset: int = 0,
) -> dict[str, Any]:
    """
    One page of metadata rows (newest first) plus the total matching count.
    """
    where_clause, args = sql.conditions(metadata_filters(status=status, version=version))
    n = len(args)

    page_query = f"""
        SELECT {METADATA_COLUMNS}
        FROM hierarchy_metadata
        {where_clause}
        ORDER BY created_at DESC, id DESC
        LIMIT ${n + 1}
        OFFSET ${n + 2}
    """
    count_query = f"""
        SELECT count(*) AS total
        FROM hierarchy_metadata
        {where_clause}
    """

    rows, total = await asyncio.gather(
        database.fetch_all(page_query, *args, limit, offset),
        database.fetch_val(count_query, *args),
    )
    return {
        "items": [_metadata_row(row) for row in rows],
        "total": int(total or 0),
        "limit": limit,
        "offset": offset,
    }


async def delete_metadata(database: Database, metadata_id: int) -> dict[str, Any] | None:
    """
    Delete a metadata row; its data rows go with it (ON DELETE CASCADE).
    Returns the deleted row, or None when not found.
    """
    row = await database.fetch_one(
        f"""
        DELETE FROM hierarchy_metadata
        WHERE id = $1
        RETURNING {METADATA_COLUMNS}
        """,
        metadata_id,
    )
    return _metadata_row(row)
