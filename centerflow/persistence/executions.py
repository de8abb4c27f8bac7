"""Persistence for :class:`~centerflow.db.models.AgentExecution` records."""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from datetime import datetime
from typing import Any, AsyncIterator, Dict, List, Optional, Sequence

from sqlalchemy import func
from sqlalchemy.ext.asyncio import AsyncSession
from sqlmodel import col, select

from ..db.models import AgentExecution
from ..enums import AgentType, ExecutionStatus
from ..errors import InvalidTransition
from ..utils import utcnow
from .models import ExecutionFilters, Page

logger = logging.getLogger(__name__)


class ExecutionRepository:
    """Reads and writes execution records through one session.

    Every state transition is persisted as soon as it is applied: committed
    normally, or flushed into the open transaction while inside
    :meth:`atomic`, in which case a rollback also undoes it.
    """

    def __init__(self, session: AsyncSession) -> None:
        self._session = session
        self._deferred = False

    # ------------------------------------------------------------------
    # Writes
    async def create(
        self,
        *,
        agent_type: AgentType,
        actor_id: int,
        center_id: int,
        context: Optional[Dict[str, Any]] = None,
        target: Any = None,
    ) -> AgentExecution:
        execution = AgentExecution(
            center_id=center_id,
            agent_type=agent_type,
            status=ExecutionStatus.PENDING,
            context=dict(context or {}),
            initiated_by=actor_id,
            steps_completed=[],
        )
        if target is not None:
            execution.target_type = type(target).__name__
            execution.target_id = target.id
        await self._persist(execution)
        logger.debug(f"Created execution {execution.id} ({agent_type.value})")
        return execution

    async def attach_target(self, execution: AgentExecution, target: Any) -> None:
        execution.target_type = type(target).__name__
        execution.target_id = target.id
        await self._persist(execution)

    async def mark_running(self, execution: AgentExecution) -> None:
        execution.mark_running()
        await self._persist(execution)

    async def add_completed_step(self, execution: AgentExecution, step: str) -> None:
        execution.add_completed_step(step)
        await self._persist(execution)

    async def mark_completed(self, execution: AgentExecution, result: Dict[str, Any]) -> None:
        execution.mark_completed(result)
        await self._persist(execution)

    async def mark_failed(self, execution: AgentExecution, result: Dict[str, Any]) -> None:
        execution.mark_failed(result)
        await self._persist(execution)

    async def soft_delete(self, execution: AgentExecution) -> None:
        if not execution.is_finished:
            raise InvalidTransition(
                execution.status,
                "deleted",
                f"Execution {execution.id} is still in progress and cannot be deleted.",
            )
        execution.deleted_at = utcnow()
        await self._persist(execution)

    async def refresh(self, execution: AgentExecution) -> None:
        await self._session.refresh(execution)

    @asynccontextmanager
    async def atomic(self) -> AsyncIterator[None]:
        """Run the block in one transaction; writes flush instead of commit."""
        if self._session.in_transaction():
            await self._session.commit()
        self._deferred = True
        try:
            async with self._session.begin():
                yield
        finally:
            self._deferred = False

    async def _persist(self, execution: AgentExecution) -> None:
        execution.updated_at = utcnow()
        self._session.add(execution)
        if self._deferred:
            await self._session.flush()
        else:
            await self._session.commit()

    # ------------------------------------------------------------------
    # Reads
    async def get(self, execution_id: int, include_deleted: bool = False) -> AgentExecution | None:
        execution = await self._session.get(AgentExecution, execution_id)
        if execution is None:
            return None
        if execution.deleted_at is not None and not include_deleted:
            return None
        return execution

    async def paginate(
        self, filters: ExecutionFilters, center_ids: Optional[Sequence[int]] = None
    ) -> Page:
        """Newest-first page of executions.

        ``center_ids`` restricts the listing to those centers; ``None`` means
        unrestricted.
        """
        stmt = select(AgentExecution).where(col(AgentExecution.deleted_at).is_(None))
        if center_ids is not None:
            stmt = stmt.where(col(AgentExecution.center_id).in_(list(center_ids)))
        if filters.center_id is not None:
            stmt = stmt.where(AgentExecution.center_id == filters.center_id)
        if filters.agent_type is not None:
            stmt = stmt.where(AgentExecution.agent_type == filters.agent_type)
        if filters.status is not None:
            stmt = stmt.where(AgentExecution.status == filters.status)
        if filters.initiated_by is not None:
            stmt = stmt.where(AgentExecution.initiated_by == filters.initiated_by)

        count_stmt = select(func.count()).select_from(stmt.subquery())
        total = (await self._session.execute(count_stmt)).scalar_one()

        stmt = (
            stmt.order_by(col(AgentExecution.created_at).desc(), col(AgentExecution.id).desc())
            .offset((filters.page - 1) * filters.per_page)
            .limit(filters.per_page)
        )
        items = list((await self._session.execute(stmt)).scalars().all())
        return Page(items=items, page=filters.page, per_page=filters.per_page, total=total)

    async def find_stale_running(
        self, older_than: datetime, center_ids: Optional[Sequence[int]] = None
    ) -> List[AgentExecution]:
        """Running records whose last write is older than ``older_than``.

        Detection only: nothing here moves a stuck record out of Running.
        """
        stmt = select(AgentExecution).where(
            AgentExecution.status == ExecutionStatus.RUNNING,
            col(AgentExecution.updated_at) < older_than,
            col(AgentExecution.deleted_at).is_(None),
        )
        if center_ids is not None:
            stmt = stmt.where(col(AgentExecution.center_id).in_(list(center_ids)))
        stmt = stmt.order_by(col(AgentExecution.updated_at))
        return list((await self._session.execute(stmt)).scalars().all())
