"""JSON-ready shapes for executions, agents and errors."""

from __future__ import annotations

from datetime import datetime
from typing import Any, Dict, Mapping, Optional

from .db.models import AgentExecution
from .enums import AgentType, ExecutionStatus
from .errors import CenterflowError
from .persistence.models import Page
from .registry.models import AgentDescriptor


def _iso(value: Optional[datetime]) -> Optional[str]:
    return value.isoformat() if value is not None else None


def serialize_execution(execution: AgentExecution) -> Dict[str, Any]:
    agent_type = AgentType(execution.agent_type)
    status = ExecutionStatus(execution.status)
    return {
        "id": execution.id,
        "center_id": execution.center_id,
        "agent_type": agent_type.value,
        "agent_type_label": agent_type.label,
        "target_type": execution.target_type,
        "target_id": execution.target_id,
        "status": int(status),
        "status_key": status.name.lower(),
        "status_label": status.label,
        "context": execution.context,
        "result": execution.result,
        "steps_completed": list(execution.steps_completed or []),
        "started_at": _iso(execution.started_at),
        "completed_at": _iso(execution.completed_at),
        "initiated_by": execution.initiated_by,
        "created_at": _iso(execution.created_at),
        "updated_at": _iso(execution.updated_at),
    }


def serialize_page(page: Page) -> Dict[str, Any]:
    return {
        "data": [serialize_execution(item) for item in page.items],
        "meta": {
            "page": page.page,
            "per_page": page.per_page,
            "total": page.total,
            "last_page": page.last_page,
        },
    }


def serialize_agents(agents: Mapping[AgentType, AgentDescriptor]) -> Dict[str, Any]:
    """Agent listing keyed by type tag, in registry order."""
    return {
        agent_type.value: descriptor.model_dump(mode="json")
        for agent_type, descriptor in agents.items()
    }


def serialize_error(exc: CenterflowError) -> Dict[str, Any]:
    return {
        "success": False,
        "error": {
            "code": exc.code,
            "message": exc.message,
            "details": exc.details,
        },
    }
