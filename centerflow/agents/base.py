"""Base class every workflow agent derives from."""

from __future__ import annotations

import abc
from typing import Any, ClassVar, Dict, List, Optional, Tuple

from ..db.models import AgentExecution
from ..enums import AgentType, ExecutionPolicy
from ..errors import UnknownStep
from ..registry.models import AgentDescriptor
from ..runner import DEFAULT_RUNNER, StepRun, WorkflowRunner
from ..security.context import Actor
from ..uow import UnitOfWork


class Agent(metaclass=abc.ABCMeta):
    """A named, fixed-step business workflow.

    Subclasses declare their identity and steps as class attributes and
    implement one ``_step_<name>`` coroutine per step. Agents hold no
    per-run state: everything a run accumulates lives on the
    :class:`~centerflow.runner.StepRun` the runner passes in.
    """

    agent_type: ClassVar[AgentType]
    name: ClassVar[str]
    description: ClassVar[str] = ""
    steps: ClassVar[Tuple[str, ...]]
    policy: ClassVar[ExecutionPolicy]
    permission: ClassVar[Optional[str]] = None

    def __init__(self, runner: Optional[WorkflowRunner] = None) -> None:
        self._runner = runner or DEFAULT_RUNNER

    def describe(self) -> AgentDescriptor:
        return AgentDescriptor(
            type=self.agent_type,
            name=self.name,
            description=self.description,
            permission=self.permission,
            steps=list(self.steps),
            policy=self.policy,
        )

    def validate_context(self, context: Dict[str, Any]) -> Dict[str, List[str]]:
        """Field-keyed problems with ``context``; empty means valid."""
        return {}

    @abc.abstractmethod
    def can_execute(self, actor: Actor) -> bool:
        """Whether ``actor`` may run this agent."""
        raise NotImplementedError

    async def resolve_target(self, uow: UnitOfWork, context: Dict[str, Any]) -> Any:
        """Load and check the entity the workflow acts on.

        Runs before the record moves to Running. ``None`` means a step
        resolves the target itself.
        """
        return None

    async def execute_step(self, run: StepRun, step: str) -> Dict[str, Any]:
        handler = getattr(self, f"_step_{step}", None) if step in self.steps else None
        if handler is None:
            raise UnknownStep(step)
        return await handler(run)

    @abc.abstractmethod
    async def rollback(self, run: StepRun, completed_steps: List[str]) -> None:
        """Compensate for ``completed_steps`` after a failed run.

        ``completed_steps`` is the runner's in-memory list, which may be
        longer than what the record still holds after a transaction rollback.
        """
        raise NotImplementedError

    def build_result(self, run: StepRun) -> Dict[str, Any]:
        return {
            "success": True,
            "steps": dict(run.results),
            **self._target_fields(run),
        }

    def build_failure(self, run: StepRun, error: Exception) -> Dict[str, Any]:
        return {
            "success": False,
            "error": str(error),
            "steps_completed": list(run.completed_steps),
        }

    async def execute(
        self,
        uow: UnitOfWork,
        execution: AgentExecution,
        actor: Actor,
        context: Dict[str, Any],
    ) -> Dict[str, Any]:
        return await self._runner.run(self, uow, execution, actor, context)

    @staticmethod
    def _target_fields(run: StepRun) -> Dict[str, Any]:
        target = run.target
        return {
            "target_id": getattr(target, "id", None),
            "target_type": type(target).__name__ if target is not None else None,
        }

    def __repr__(self) -> str:  # pragma: no cover - debugging aid
        return f"<{type(self).__name__} {self.agent_type.value}>"
