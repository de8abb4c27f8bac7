"""
Error classes for centerflow.

Every error carries a stable ``code`` so the HTTP or console layer in front
of the core can map it to a response without reading the message text.

Error handling contract:
- Pre-flight errors (AgentNotRegistered, ScopeAccessDenied, ValidationFailed)
  are raised before any execution record exists.
- Step errors are raised from inside a running workflow. The runner records
  the failure on the execution record and re-raises the same object.
"""

from __future__ import annotations

from typing import Any, Dict, List, Optional


class CenterflowError(Exception):
    """Base exception for centerflow."""

    code = "CENTERFLOW_ERROR"

    def __init__(self, message: str) -> None:
        self.message = message
        super().__init__(message)

    @property
    def details(self) -> Optional[Dict[str, Any]]:
        return None


# Registry


class AgentNotRegistered(CenterflowError):
    """No implementation is registered for the requested agent type."""

    code = "AGENT_NOT_REGISTERED"

    def __init__(self, agent_type: Any) -> None:
        self.agent_type = getattr(agent_type, "value", agent_type)
        super().__init__(f"Agent type '{self.agent_type}' is not registered.")


class RegistryConfigurationError(CenterflowError):
    code = "REGISTRY_MISCONFIGURED"


# Pre-flight


class ValidationFailed(CenterflowError):
    """Field-keyed validation errors, e.g. ``{"course_id": ["..."]}``."""

    code = "VALIDATION_ERROR"

    def __init__(self, errors: Dict[str, List[str]]) -> None:
        self.errors = {field: list(messages) for field, messages in errors.items()}
        first = next(iter(self.errors.values()), ["Validation failed."])
        super().__init__(first[0] if first else "Validation failed.")

    @property
    def details(self) -> Dict[str, Any]:
        return {"errors": self.errors}


class ScopeAccessDenied(CenterflowError):
    code = "SCOPE_ACCESS_DENIED"

    def __init__(self, actor_id: int, center_id: Optional[int]) -> None:
        self.actor_id = actor_id
        self.center_id = center_id
        super().__init__(f"Actor {actor_id} cannot access center {center_id}.")


# Lookups


class EntityNotFound(CenterflowError):
    code = "NOT_FOUND"

    def __init__(self, entity: str, entity_id: Any) -> None:
        self.entity = entity
        self.entity_id = entity_id
        super().__init__(f"{entity} {entity_id} not found.")


class ExecutionNotFound(EntityNotFound):
    def __init__(self, execution_id: Any) -> None:
        super().__init__("Agent execution", execution_id)


class InvalidTarget(CenterflowError):
    """The resolved target is in a state the workflow does not accept."""

    code = "INVALID_TARGET"

    def __init__(self, errors: Dict[str, List[str]]) -> None:
        self.errors = errors
        first = next(iter(errors.values()), ["Invalid target."])
        super().__init__(first[0] if first else "Invalid target.")

    @property
    def details(self) -> Dict[str, Any]:
        return {"errors": self.errors}


# State machine


class InvalidTransition(CenterflowError):
    code = "INVALID_TRANSITION"

    def __init__(self, current: Any, target: Any, message: Optional[str] = None) -> None:
        self.current = current
        self.target = target
        current_name = getattr(current, "name", current)
        target_name = getattr(target, "name", target)
        super().__init__(
            message or f"Cannot move execution from {current_name} to {target_name}."
        )


# Steps


class WorkflowStepError(CenterflowError):
    """A step's business validation failed; aborts the workflow."""

    code = "STEP_FAILED"


class CenterMismatch(WorkflowStepError):
    code = "CENTER_MISMATCH"


class EnrollmentLimitExceeded(WorkflowStepError):
    code = "ENROLLMENT_LIMIT_EXCEEDED"

    def __init__(self, limit: int, current: int, requested: int) -> None:
        self.limit = limit
        self.current = current
        self.requested = requested
        super().__init__(
            f"Enrollment limit exceeded. Limit: {limit}, Current: {current}, "
            f"Requested: {requested}"
        )

    @property
    def details(self) -> Dict[str, Any]:
        return {"limit": self.limit, "current": self.current, "requested": self.requested}


class UnknownStep(CenterflowError):
    code = "UNKNOWN_STEP"

    def __init__(self, step: str) -> None:
        self.step = step
        super().__init__(f"Unknown step: {step}")


__all__ = [
    "CenterflowError",
    "AgentNotRegistered",
    "RegistryConfigurationError",
    "ValidationFailed",
    "ScopeAccessDenied",
    "EntityNotFound",
    "ExecutionNotFound",
    "InvalidTarget",
    "InvalidTransition",
    "WorkflowStepError",
    "CenterMismatch",
    "EnrollmentLimitExceeded",
    "UnknownStep",
]
