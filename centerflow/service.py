"""Facade the outer layers (HTTP handlers, CLI) call into."""

from __future__ import annotations

import logging
from datetime import timedelta
from typing import Any, Dict, List, Optional, Union

from .config import CenterflowConfig
from .db import AgentExecution, Database
from .enums import AgentType
from .errors import ExecutionNotFound, ValidationFailed
from .persistence import ExecutionFilters, ExecutionRepository, Page
from .registry import AgentDescriptor, AgentRegistry
from .security import Actor, CenterScopeService, ScopeAccessChecker
from .uow import UnitOfWork, UnitOfWorkFactory
from .utils import utcnow

logger = logging.getLogger(__name__)


class ExecutionService:
    """Entry point for running agents and inspecting their executions.

    Every call opens its own session. ``execute`` runs the whole workflow
    before returning; nothing is scheduled in the background.
    """

    def __init__(
        self,
        database: Database,
        registry: AgentRegistry,
        scope: Optional[ScopeAccessChecker] = None,
        uow_factory: Optional[UnitOfWorkFactory] = None,
        config: Optional[CenterflowConfig] = None,
    ) -> None:
        self.database = database
        self.registry = registry
        self.scope = scope or CenterScopeService()
        self.uow_factory: UnitOfWorkFactory = uow_factory or UnitOfWork
        self.config = config or CenterflowConfig()

    async def execute(
        self,
        agent_type: Union[AgentType, str],
        actor: Actor,
        center_id: int,
        context: Dict[str, Any],
    ) -> Dict[str, Any]:
        """Run ``agent_type`` for ``actor`` in ``center_id``.

        Every rejection before the record is created (unknown agent, scope,
        authorization, context) leaves no trace in storage. Workflow errors
        are re-raised after the record has been marked Failed.
        """
        agent = self.registry.resolve(agent_type)
        self.scope.assert_actor_has_scope(actor, center_id)

        if not agent.can_execute(actor):
            raise ValidationFailed({"agent": ["You are not authorized to execute this agent."]})

        errors = agent.validate_context(context)
        if errors:
            raise ValidationFailed(errors)

        async with self.database.session() as session:
            uow = self.uow_factory(session)
            execution = await uow.executions.create(
                agent_type=agent.agent_type,
                actor_id=actor.id,
                center_id=center_id,
                context=context,
            )
            logger.info(
                f"Execution {execution.id} created: {agent.agent_type.value} "
                f"by actor {actor.id} in center {center_id}"
            )
            return await agent.execute(uow, execution, actor, context)

    async def paginate_for_admin(
        self, actor: Actor, filters: Optional[ExecutionFilters] = None
    ) -> Page:
        filters = filters or ExecutionFilters(per_page=self.config.pagination.default_per_page)
        if filters.per_page > self.config.pagination.max_per_page:
            filters = filters.model_copy(
                update={"per_page": self.config.pagination.max_per_page}
            )
        async with self.database.session() as session:
            return await ExecutionRepository(session).paginate(
                filters, center_ids=self.scope.accessible_center_ids(actor)
            )

    async def get_execution(self, actor: Actor, execution_id: int) -> AgentExecution:
        async with self.database.session() as session:
            execution = await ExecutionRepository(session).get(execution_id)
        if execution is None:
            raise ExecutionNotFound(execution_id)
        self.assert_actor_can_access(actor, execution)
        return execution

    def assert_actor_can_access(self, actor: Actor, execution: AgentExecution) -> None:
        self.scope.assert_same_scope(actor, execution)

    def get_available_agents(self, actor: Actor) -> Dict[AgentType, AgentDescriptor]:
        return {
            agent_type: agent.describe()
            for agent_type, agent in self.registry.items()
            if agent.can_execute(actor)
        }

    async def find_stale_executions(
        self, actor: Actor, older_than: Optional[timedelta] = None
    ) -> List[AgentExecution]:
        """Running executions not touched for ``older_than``.

        A run that died between its Running write and its terminal write
        stays Running forever; this only reports such records.
        """
        threshold = older_than or timedelta(minutes=self.config.stale_after_minutes)
        async with self.database.session() as session:
            stale = await ExecutionRepository(session).find_stale_running(
                utcnow() - threshold, center_ids=self.scope.accessible_center_ids(actor)
            )
        if stale:
            logger.warning(
                f"{len(stale)} executions Running for more than {threshold}: "
                f"{[e.id for e in stale]}"
            )
        return stale

    async def delete_execution(self, actor: Actor, execution_id: int) -> AgentExecution:
        async with self.database.session() as session:
            repository = ExecutionRepository(session)
            execution = await repository.get(execution_id)
            if execution is None:
                raise ExecutionNotFound(execution_id)
            self.assert_actor_can_access(actor, execution)
            await repository.soft_delete(execution)
        logger.info(f"Execution {execution_id} deleted by actor {actor.id}")
        return execution
