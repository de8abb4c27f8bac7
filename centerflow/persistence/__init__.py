"""Persistence layer for centerflow executions."""

from __future__ import annotations

import os
from typing import Optional

from ..config import CenterflowConfig, load_config
from ..db import Database
from .domain import CourseRepository, EnrollmentRepository, UserRepository
from .executions import ExecutionRepository
from .models import ExecutionFilters, Page


def normalize_database_url(database_url: str) -> str:
    """Map plain ``sqlite://`` / ``postgres://`` URLs onto their async drivers."""

    if database_url.startswith("sqlite+aiosqlite://") or database_url.startswith(
        "postgresql+asyncpg://"
    ):
        return database_url
    if database_url.startswith("sqlite://"):
        return database_url.replace("sqlite://", "sqlite+aiosqlite://", 1)
    if database_url.startswith("postgres://"):
        return database_url.replace("postgres://", "postgresql+asyncpg://", 1)
    if database_url.startswith("postgresql://"):
        return database_url.replace("postgresql://", "postgresql+asyncpg://", 1)
    raise ValueError(f"Unsupported database backend: {database_url}")


def get_database(
    database_url: Optional[str] = None, config: Optional[CenterflowConfig] = None
) -> Database:
    """Factory function to obtain the execution database.

    The backend is selected from ``database_url`` which can be provided
    explicitly, via environment variable ``CENTERFLOW_DATABASE_URL`` or
    ``DATABASE_URL``, or from loaded configuration.
    """

    config = config or load_config()
    database_url = (
        database_url
        or os.getenv("CENTERFLOW_DATABASE_URL")
        or os.getenv("DATABASE_URL")
        or config.database_url
    )
    return Database(normalize_database_url(database_url), echo=config.echo_sql)


__all__ = [
    "CourseRepository",
    "EnrollmentRepository",
    "ExecutionFilters",
    "ExecutionRepository",
    "Page",
    "UserRepository",
    "get_database",
    "normalize_database_url",
]
