"""Pydantic models describing registered agents."""

from __future__ import annotations

from typing import List, Optional

from pydantic import BaseModel, Field, field_validator

from ..enums import AgentType, ExecutionPolicy


class AgentDescriptor(BaseModel):
    """Metadata describing an agent in the registry."""

    # Identity
    type: AgentType
    name: str
    description: Optional[str] = None
    permission: Optional[str] = None

    # Workflow shape
    steps: List[str] = Field(default_factory=list)
    policy: ExecutionPolicy

    @field_validator("steps")
    @classmethod
    def _ensure_steps(cls, v: List[str]) -> List[str]:
        if not v:
            raise ValueError("an agent must declare at least one step")
        if len(set(v)) != len(v):
            raise ValueError("step names must be unique")
        return v

    @property
    def type_label(self) -> str:
        return self.type.label
