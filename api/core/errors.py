"""
Error types shared by the repository, service and HTTP layers.

Each error knows the HTTP status it maps to; `main.py` registers one handler
that renders them as `{"error": message, **context}`.
"""

from __future__ import annotations

from typing import Any


class HierarchyAPIError(Exception):
    status_code = 500

    def __init__(self, message: str, context: dict[str, Any] | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.context = context or {}

    def to_dict(self) -> dict[str, Any]:
        return {"error": self.message, **self.context}


class ValidationError(HierarchyAPIError):
    """Missing or invalid required fields."""

    status_code = 400


class NotFoundError(HierarchyAPIError):
    status_code = 404


class ParseError(HierarchyAPIError):
    """Text that should hold a JSON document could not be parsed."""

    status_code = 500


class StoreError(HierarchyAPIError):
    """A query against the database failed."""

    status_code = 500
