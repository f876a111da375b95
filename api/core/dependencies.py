"""
FastAPI dependencies shared by feature routers.
"""

from __future__ import annotations

from fastapi import Request

from .db import Database


def get_database(request: Request) -> Database:
    database = getattr(request.app.state, "db", None)
    if database is None:
        raise RuntimeError("Database is not initialized. The app lifespan must run connect() on startup.")
    return database
