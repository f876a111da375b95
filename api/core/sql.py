"""
Helpers for statements whose column list depends on the caller.

Only column names are rendered into SQL text, and only after they pass an
identifier check. Values always travel as asyncpg positional parameters
($1, $2, ...).
"""

from __future__ import annotations

import re
from collections.abc import Mapping
from typing import Any

_IDENTIFIER = re.compile(r"^[a-z_][a-z0-9_]*$")


def _column(name: str) -> str:
    if not _IDENTIFIER.match(name):
        raise ValueError(f"Invalid column name: {name!r}")
    return name


def assignments(fields: Mapping[str, Any], *, start: int = 1) -> tuple[str, list[Any]]:
    """
    Render `col = $n` pairs for an UPDATE ... SET clause.

    `start` is the first placeholder number, so callers can reserve lower
    numbers (e.g. $1 for the row id).
    """
    parts: list[str] = []
    args: list[Any] = []
    for index, (name, value) in enumerate(fields.items(), start=start):
        parts.append(f"{_column(name)} = ${index}")
        args.append(value)
    return ", ".join(parts), args


def conditions(filters: Mapping[str, Any], *, start: int = 1) -> tuple[str, list[Any]]:
    """
    Render an equality-only WHERE clause (joined with AND).

    Returns ("", []) when there is nothing to filter on.
    """
    parts: list[str] = []
    args: list[Any] = []
    for index, (name, value) in enumerate(filters.items(), start=start):
        parts.append(f"{_column(name)} = ${index}")
        args.append(value)
    if not parts:
        return "", []
    return "WHERE " + " AND ".join(parts), args
