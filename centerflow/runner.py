"""Step loop shared by every agent.

One loop drives every agent; how much of a failed run survives is decided by
the :class:`StepExecutionPolicy` the agent declares:

- ``TransactionalPolicy``: Running, every step and the Completed write happen
  in one transaction. A failure rolls all of it back, including the record's
  step history; the failure result carries the in-memory step list instead.
- ``StepCommitPolicy``: each record write commits, taking the step's domain
  writes with it. A failure only discards the failing step's uncommitted
  writes.

In both cases a failure ends with the agent's rollback hook, a Failed record,
an ``agent.failed`` audit entry and the original exception re-raised.
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from contextlib import nullcontext
from dataclasses import dataclass, field
from typing import (
    TYPE_CHECKING,
    Any,
    AsyncContextManager,
    Dict,
    List,
    Mapping,
    Optional,
)

from .db.models import AgentExecution
from .enums import AuditAction, ExecutionPolicy
from .security.context import Actor
from .uow import UnitOfWork

if TYPE_CHECKING:
    from .agents.base import Agent

logger = logging.getLogger(__name__)


@dataclass
class StepRun:
    """State one execution's steps share.

    ``completed_steps`` is the runner's own copy of the step history; it
    survives a transaction rollback that wipes the persisted one.
    """

    uow: UnitOfWork
    execution: AgentExecution
    actor: Actor
    context: Dict[str, Any]
    target: Any = None
    results: Dict[str, Dict[str, Any]] = field(default_factory=dict)
    completed_steps: List[str] = field(default_factory=list)
    state: Dict[str, Any] = field(default_factory=dict)
    execution_id: Optional[int] = field(init=False)

    def __post_init__(self) -> None:
        # readable after a rollback has expired the record
        self.execution_id = self.execution.id

    async def set_target(self, target: Any) -> None:
        self.target = target
        await self.uow.executions.attach_target(self.execution, target)


class StepExecutionPolicy(ABC):
    """Where the transaction boundary of a run sits."""

    name: ExecutionPolicy

    @abstractmethod
    def boundary(self, run: StepRun) -> AsyncContextManager[Any]:
        """Context wrapping Running, the step loop and the Completed write."""


class TransactionalPolicy(StepExecutionPolicy):
    name = ExecutionPolicy.TRANSACTIONAL

    def boundary(self, run: StepRun) -> AsyncContextManager[Any]:
        return run.uow.executions.atomic()


class StepCommitPolicy(StepExecutionPolicy):
    name = ExecutionPolicy.STEP_COMMIT

    def boundary(self, run: StepRun) -> AsyncContextManager[Any]:
        return nullcontext()


DEFAULT_POLICIES: Mapping[ExecutionPolicy, StepExecutionPolicy] = {
    ExecutionPolicy.TRANSACTIONAL: TransactionalPolicy(),
    ExecutionPolicy.STEP_COMMIT: StepCommitPolicy(),
}


class WorkflowRunner:
    """Drives an agent through its fixed steps against one execution record."""

    def __init__(
        self, policies: Optional[Mapping[ExecutionPolicy, StepExecutionPolicy]] = None
    ) -> None:
        self._policies = dict(policies or DEFAULT_POLICIES)

    def policy_for(self, agent: "Agent") -> StepExecutionPolicy:
        return self._policies[agent.policy]

    async def run(
        self,
        agent: "Agent",
        uow: UnitOfWork,
        execution: AgentExecution,
        actor: Actor,
        context: Dict[str, Any],
    ) -> Dict[str, Any]:
        run = StepRun(uow=uow, execution=execution, actor=actor, context=context)

        # resolved before any boundary opens: a bad target leaves the record Pending
        target = await agent.resolve_target(uow, context)
        if target is not None:
            await run.set_target(target)

        policy = self.policy_for(agent)
        try:
            async with policy.boundary(run):
                await uow.executions.mark_running(execution)
                for step in agent.steps:
                    logger.debug(f"Execution {run.execution_id}: running step {step}")
                    run.results[step] = await agent.execute_step(run, step)
                    await uow.executions.add_completed_step(execution, step)
                    run.completed_steps.append(step)

                result = agent.build_result(run)
                await uow.executions.mark_completed(execution, result)
                await self._audit(run, agent, AuditAction.AGENT_EXECUTED)
        except Exception as exc:
            await self._fail(agent, run, exc)
            raise

        await self._commit_audit(run)
        logger.info(
            f"Execution {run.execution_id} ({agent.agent_type.value}) completed "
            f"{len(run.completed_steps)} steps"
        )
        return result

    async def _fail(self, agent: "Agent", run: StepRun, error: Exception) -> None:
        uow = run.uow
        completed = list(run.completed_steps)

        # drop whatever the failing step left pending and reload what a
        # transaction rollback may have reverted
        await uow.rollback()
        await uow.refresh(run.execution, run.target)

        rollback_error: Optional[str] = None
        try:
            await agent.rollback(run, completed)
        except Exception as exc:
            logger.exception(
                f"Rollback hook of execution {run.execution_id} "
                f"({agent.agent_type.value}) failed"
            )
            rollback_error = str(exc)
            await uow.rollback()
            await uow.refresh(run.execution, run.target)

        result = agent.build_failure(run, error)
        if rollback_error is not None:
            result["rollback_error"] = rollback_error
        await uow.executions.mark_failed(run.execution, result)
        await self._audit(run, agent, AuditAction.AGENT_FAILED, {"error": str(error)})
        await self._commit_audit(run)

        failed_step = agent.steps[len(completed)] if len(completed) < len(agent.steps) else "finish"
        logger.info(
            f"Execution {run.execution_id} ({agent.agent_type.value}) failed "
            f"at {failed_step}: {error}"
        )

    async def _audit(
        self,
        run: StepRun,
        agent: "Agent",
        action: AuditAction,
        metadata: Optional[Dict[str, Any]] = None,
    ) -> None:
        """Write the runner's own audit entry; never lets it change the outcome."""
        try:
            await run.uow.audit.log(
                run.actor,
                run.target,
                action,
                {
                    "agent_type": agent.agent_type.value,
                    "execution_id": run.execution_id,
                    **(metadata or {}),
                },
            )
        except Exception:
            logger.exception(f"Audit entry {action.value} for execution {run.execution_id} failed")

    async def _commit_audit(self, run: StepRun) -> None:
        try:
            await run.uow.commit()
        except Exception:
            logger.exception(f"Committing audit entries for execution {run.execution_id} failed")
            await run.uow.rollback()


DEFAULT_RUNNER = WorkflowRunner()
