"""
FastAPI router for hierarchy endpoints.
"""

from __future__ import annotations

import logging
import math
from typing import Any

from fastapi import APIRouter, Body, Depends, Query

from core.db import Database
from core.dependencies import get_database
from core.errors import NotFoundError, ValidationError

from . import schemas, service

logger = logging.getLogger(__name__)

router = APIRouter()


@router.post("/api/hierarchies", status_code=201)
async def create_hierarchy(
    payload: schemas.CreateHierarchyRequest | None = Body(default=None),
    database: Database = Depends(get_database),
) -> dict:
    if payload is None:
        raise ValidationError("Request body is required")

    logger.debug("create_hierarchy_request body=%s", payload.model_dump(by_alias=True))

    if service.is_missing(payload.user_input) or service.is_missing(payload.data):
        raise ValidationError(
            "userInput and data are required",
            context={
                "received": {
                    "userInput": not service.is_missing(payload.user_input),
                    "data": not service.is_missing(payload.data),
                    "version": not service.is_missing(payload.version),
                }
            },
        )

    return await service.create_hierarchy(
        database,
        user_input=payload.user_input,
        data=payload.data,
        version=payload.version,
        user_feedback=payload.user_feedback,
        status=payload.status.value if payload.status is not None else None,
    )


@router.get("/api/hierarchies")
async def list_hierarchies(
    status: schemas.HierarchyStatus | None = Query(default=None),
    version: str | None = Query(default=None, max_length=50),
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1),
    database: Database = Depends(get_database),
) -> dict:
    """
    Page through metadata rows, newest first.
    """
    offset = (page - 1) * limit
    result = await service.list_hierarchies(
        database,
        {"status": status.value if status is not None else None, "version": version},
        limit=limit,
        offset=offset,
    )
    total = result["total"]
    return {
        "data": result["items"],
        "pagination": {
            "total": total,
            "page": page,
            "limit": limit,
            "totalPages": math.ceil(total / limit),
        },
    }


@router.get("/api/hierarchies/{metadata_id}")
async def get_hierarchy(
    metadata_id: int,
    database: Database = Depends(get_database),
) -> dict:
    return await service.get_hierarchy(database, metadata_id)


@router.patch("/api/hierarchies/{metadata_id}/status")
async def update_status(
    metadata_id: int,
    payload: schemas.StatusUpdateRequest,
    database: Database = Depends(get_database),
) -> dict:
    if payload.status not in schemas.STATUS_VALUES:
        raise ValidationError('Invalid status. Must be "in-draft" or "approved"')

    metadata = await service.update_metadata(database, metadata_id, {"status": payload.status})
    if metadata is None:
        raise NotFoundError("Hierarchy not found")
    return metadata


@router.patch("/api/hierarchies/{metadata_id}")
async def update_metadata(
    metadata_id: int,
    payload: schemas.MetadataUpdateRequest,
    database: Database = Depends(get_database),
) -> dict:
    """
    Update any subset of status, userFeedback and version.
    Sending `"userFeedback": null` clears the feedback.
    """
    updates = payload.model_dump(exclude_unset=True)
    if isinstance(updates.get("status"), schemas.HierarchyStatus):
        updates["status"] = updates["status"].value

    metadata = await service.update_metadata(database, metadata_id, updates)
    if metadata is None:
        raise NotFoundError("Hierarchy not found")
    return metadata


@router.post("/api/hierarchies/{metadata_id}/data", status_code=201)
async def add_hierarchy_data(
    metadata_id: int,
    data: Any = Body(...),
    database: Database = Depends(get_database),
) -> dict:
    """
    Append a new data document. The request body is stored as-is.
    """
    return await service.add_hierarchy_data(database, metadata_id, data)


@router.delete("/api/hierarchies/{metadata_id}")
async def delete_hierarchy(
    metadata_id: int,
    database: Database = Depends(get_database),
) -> dict:
    """
    Delete a hierarchy; its data rows are removed by the store's cascade.
    """
    metadata = await service.delete_hierarchy(database, metadata_id)
    if metadata is None:
        raise NotFoundError("Hierarchy not found")
    return metadata
