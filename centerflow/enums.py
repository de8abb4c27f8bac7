"""Enumerations shared by the execution core and its collaborators."""

from __future__ import annotations

from enum import Enum, IntEnum


class AgentType(str, Enum):
    """Closed set of agent tags. Not every tag needs an implementation."""

    CONTENT_PUBLISHING = "content_publishing"
    ENROLLMENT = "enrollment"
    ANALYTICS = "analytics"
    NOTIFICATION = "notification"

    @property
    def label(self) -> str:
        return "".join(part.capitalize() for part in self.name.split("_"))


class ExecutionStatus(IntEnum):
    PENDING = 0
    RUNNING = 1
    COMPLETED = 2
    FAILED = 3

    @property
    def label(self) -> str:
        return self.name

    @property
    def is_terminal(self) -> bool:
        return self in (ExecutionStatus.COMPLETED, ExecutionStatus.FAILED)


class ExecutionPolicy(str, Enum):
    """Consistency strategy a runner applies to an agent's steps."""

    TRANSACTIONAL = "transactional"
    STEP_COMMIT = "step_commit"


class CourseStatus(str, Enum):
    DRAFT = "draft"
    PUBLISHED = "published"
    ARCHIVED = "archived"


class VideoLifecycleStatus(str, Enum):
    PENDING = "pending"
    UPLOADING = "uploading"
    PROCESSING = "processing"
    READY = "ready"
    FAILED = "failed"


class EnrollmentStatus(str, Enum):
    ACTIVE = "active"
    PENDING = "pending"
    DEACTIVATED = "deactivated"
    CANCELLED = "cancelled"


class AuditAction(str, Enum):
    AGENT_EXECUTED = "agent.executed"
    AGENT_FAILED = "agent.failed"
    COURSE_PUBLISHED = "course.published"
    ENROLLMENTS_CREATED = "enrollment.bulk_created"


__all__ = [
    "AgentType",
    "ExecutionStatus",
    "ExecutionPolicy",
    "CourseStatus",
    "VideoLifecycleStatus",
    "EnrollmentStatus",
    "AuditAction",
]
