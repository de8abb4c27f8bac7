"""Query and paging models for persisted executions."""

from __future__ import annotations

import math
from typing import Any, List, Optional

from pydantic import BaseModel, Field

from ..enums import AgentType, ExecutionStatus


class ExecutionFilters(BaseModel):
    """Optional filters for the admin execution listing."""

    page: int = Field(default=1, ge=1)
    per_page: int = Field(default=15, ge=1)
    center_id: Optional[int] = None
    agent_type: Optional[AgentType] = None
    status: Optional[ExecutionStatus] = None
    initiated_by: Optional[int] = None


class Page(BaseModel):
    """One page of results plus the totals a client needs to paginate."""

    items: List[Any] = Field(default_factory=list)
    page: int = 1
    per_page: int = 15
    total: int = 0

    @property
    def last_page(self) -> int:
        return max(1, math.ceil(self.total / self.per_page))
