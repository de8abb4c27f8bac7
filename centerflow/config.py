from __future__ import annotations

import os
from typing import List, Optional

import yaml
from pydantic import BaseModel, Field

from .enums import AgentType


class PaginationConfig(BaseModel):
    """Page sizes for execution listings."""

    default_per_page: int = Field(default=15, ge=1)
    max_per_page: int = Field(default=100, ge=1)


class CenterflowConfig(BaseModel):
    """Top-level configuration model."""

    database_url: str = "sqlite+aiosqlite:///centerflow.db"
    echo_sql: bool = False
    log_level: str = "INFO"
    agents: List[AgentType] = Field(
        default_factory=lambda: [AgentType.CONTENT_PUBLISHING, AgentType.ENROLLMENT]
    )
    pagination: PaginationConfig = PaginationConfig()
    stale_after_minutes: int = Field(default=60, ge=1)


def load_config(path: Optional[str] = None) -> CenterflowConfig:
    """Load configuration from YAML file.

    Args:
        path: Optional path to config file. Falls back to CENTERFLOW_CONFIG env
            variable or 'centerflow.yaml' in the current directory.
    """

    config_path = path or os.getenv("CENTERFLOW_CONFIG", "centerflow.yaml")
    if os.path.exists(config_path):
        with open(config_path) as f:
            data = yaml.safe_load(f) or {}
        config = CenterflowConfig(**data)
    else:
        config = CenterflowConfig()

    env_db_url = os.getenv("CENTERFLOW_DATABASE_URL") or os.getenv("DATABASE_URL")
    if env_db_url:
        config.database_url = env_db_url
    return config
