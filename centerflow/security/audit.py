"""Audit logging for agent executions."""

from __future__ import annotations

from typing import Any, Dict, Optional, Protocol

from sqlalchemy.ext.asyncio import AsyncSession

from ..db.models import AuditLog
from ..enums import AuditAction
from .context import Actor


class AuditSink(Protocol):
    """Records who did what to which entity."""

    async def log(
        self,
        actor: Actor,
        subject: Any,
        action: AuditAction,
        metadata: Optional[Dict[str, Any]] = None,
    ) -> None:
        """Persist an audit log entry."""


class SessionAuditSink:
    """Adds audit rows to the caller's session without flushing.

    The row commits or rolls back together with the surrounding work, so a
    publish that is rolled back leaves no ``course.published`` entry behind.
    """

    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def log(
        self,
        actor: Actor,
        subject: Any,
        action: AuditAction,
        metadata: Optional[Dict[str, Any]] = None,
    ) -> None:
        self._session.add(
            AuditLog(
                actor_id=actor.id,
                action=AuditAction(action).value,
                subject_type=type(subject).__name__ if subject is not None else None,
                subject_id=getattr(subject, "id", None),
                details=dict(metadata or {}),
            )
        )
