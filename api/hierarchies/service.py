"""
Hierarchy business logic.

Scope:
- required-field validation before anything is written
- create = metadata row, then its first data row (two statements, no
  transaction: a failure on the second leaves the metadata row behind)
- existence checks before attaching more data
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Mapping
from typing import Any

from core.db import Database
from core.errors import NotFoundError, ValidationError

from . import repository
from .schemas import DEFAULT_STATUS, DEFAULT_VERSION, Document

logger = logging.getLogger(__name__)

REQUIRED_USER_INPUT_FIELDS = ("company", "location")


def is_missing(value: Any) -> bool:
    """
    Falsy scalars (None, "", False, 0) count as absent; empty objects and
    arrays are real documents.
    """
    if value is None or isinstance(value, (str, bool, int, float)):
        return not value
    return False


def _is_blank(value: Any) -> bool:
    if value is None:
        return True
    if isinstance(value, str):
        return not value.strip()
    return False


def validate_user_input(user_input: Document) -> dict[str, Any]:
    if _is_blank(user_input):
        raise ValidationError("Company and location are required in userInput")

    document = repository.parse_document(user_input, field="userInput")
    if not isinstance(document, dict):
        raise ValidationError("userInput must be a JSON object")

    missing = [name for name in REQUIRED_USER_INPUT_FIELDS if _is_blank(document.get(name))]
    if missing:
        raise ValidationError(
            "Company and location are required in userInput",
            context={"missing": missing},
        )
    return document


async def create_hierarchy(
    database: Database,
    *,
    user_input: Document,
    data: Document,
    version: str | None = None,
    user_feedback: str | None = None,
    status: str | None = None,
) -> dict[str, Any]:
    """
    Create the metadata envelope and its first data row.

    Returns {"metadata": <row>, "data": <row>}.
    """
    document = validate_user_input(user_input)
    if is_missing(data):
        raise ValidationError("Data is required")

    try:
        metadata = await repository.create_metadata(
            database,
            user_input=document,
            version=version or DEFAULT_VERSION,
            status=status or DEFAULT_STATUS,
            user_feedback=user_feedback,
        )
        data_row = await repository.create_data(database, metadata["id"], data)
    except Exception:
        logger.exception("create_hierarchy_failed")
        raise

    logger.info("hierarchy_created metadata_id=%s data_id=%s", metadata["id"], data_row["id"])
    return {"metadata": metadata, "data": data_row}


async def get_hierarchy(database: Database, metadata_id: int) -> dict[str, Any]:
    metadata, data = await asyncio.gather(
        repository.get_metadata_by_id(database, metadata_id),
        repository.get_data_by_metadata_id(database, metadata_id),
    )
    if metadata is None:
        raise NotFoundError("Hierarchy not found")
    return {"metadata": metadata, "data": data}


async def update_metadata(
    database: Database,
    metadata_id: int,
    updates: Mapping[str, Any],
) -> dict[str, Any] | None:
    try:
        return await repository.update_metadata(database, metadata_id, updates)
    except Exception:
        logger.warning("update_metadata_failed metadata_id=%s fields=%s", metadata_id, sorted(updates))
        raise


async def add_hierarchy_data(database: Database, metadata_id: int, data: Document) -> dict[str, Any]:
    metadata = await repository.get_metadata_by_id(database, metadata_id)
    if metadata is None:
        raise NotFoundError("Metadata not found", context={"metadataId": metadata_id})

    row = await repository.create_data(database, metadata_id, data)
    logger.info("hierarchy_data_added metadata_id=%s data_id=%s", metadata_id, row["id"])
    return row


async def list_hierarchies(
    database: Database,
    filters: Mapping[str, Any] | None = None,
    limit: int = 10,
    offset: int = 0,
) -> dict[str, Any]:
    filters = filters or {}
    return await repository.list_metadata(
        database,
        status=filters.get("status"),
        version=filters.get("version"),
        limit=limit,
        offset=offset,
    )


async def delete_hierarchy(database: Database, metadata_id: int) -> dict[str, Any] | None:
    row = await repository.delete_metadata(database, metadata_id)
    if row is not None:
        logger.info("hierarchy_deleted metadata_id=%s", metadata_id)
    return row
