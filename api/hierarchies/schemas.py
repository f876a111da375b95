"""
Pydantic schemas for hierarchy endpoints.

Wire names are camelCase (`userInput`, `userFeedback`); Python code uses
snake_case attributes.
"""

from __future__ import annotations

from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field

# JSON document as stored in a jsonb column: object, array or scalar.
Document = Any


class HierarchyStatus(str, Enum):
    IN_DRAFT = "in-draft"
    APPROVED = "approved"


STATUS_VALUES = tuple(s.value for s in HierarchyStatus)
DEFAULT_STATUS = HierarchyStatus.IN_DRAFT.value
DEFAULT_VERSION = "v0"


class CreateHierarchyRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    user_input: dict[str, Any] | str | None = Field(default=None, alias="userInput")
    version: str | None = Field(default=None, max_length=50)
    data: Document = None
    user_feedback: str | None = Field(default=None, alias="userFeedback")
    status: HierarchyStatus | None = None


class StatusUpdateRequest(BaseModel):
    # Checked against HierarchyStatus in the router so the 400 message is specific.
    status: str | None = None


class MetadataUpdateRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    status: HierarchyStatus | None = None
    user_feedback: str | None = Field(default=None, alias="userFeedback")
    version: str | None = Field(default=None, max_length=50)
