from __future__ import annotations

from datetime import datetime
from typing import Any, Dict, List, Optional

from sqlalchemy import JSON, Column, DateTime
from sqlmodel import Field, SQLModel

from ..enums import (
    AgentType,
    CourseStatus,
    EnrollmentStatus,
    ExecutionStatus,
    VideoLifecycleStatus,
)
from ..errors import InvalidTransition
from ..utils import utcnow

# every timestamp is written as aware UTC
_UTC_DATETIME = DateTime(timezone=True)

# Pending -> Failed is only observed when a transactional rollback has undone
# the Running write; the sequence is still a subsequence of the happy path.
_TRANSITIONS = {
    ExecutionStatus.PENDING: {ExecutionStatus.RUNNING, ExecutionStatus.FAILED},
    ExecutionStatus.RUNNING: {ExecutionStatus.COMPLETED, ExecutionStatus.FAILED},
    ExecutionStatus.COMPLETED: set(),
    ExecutionStatus.FAILED: set(),
}


class AgentExecution(SQLModel, table=True):
    """Persisted state of one agent workflow run.

    The transition methods only mutate the instance; persisting is the job of
    :class:`~centerflow.persistence.executions.ExecutionRepository`.
    """

    __tablename__ = "agent_executions"

    id: Optional[int] = Field(default=None, primary_key=True)
    center_id: int = Field(index=True)
    agent_type: AgentType = Field(index=True)
    target_type: Optional[str] = Field(default=None, max_length=100)
    target_id: Optional[int] = None
    status: ExecutionStatus = Field(default=ExecutionStatus.PENDING, index=True)
    context: Dict[str, Any] = Field(default_factory=dict, sa_column=Column(JSON))
    result: Optional[Dict[str, Any]] = Field(default=None, sa_column=Column(JSON))
    steps_completed: List[str] = Field(default_factory=list, sa_column=Column(JSON))
    started_at: Optional[datetime] = Field(default=None, sa_type=_UTC_DATETIME)
    completed_at: Optional[datetime] = Field(default=None, sa_type=_UTC_DATETIME)
    initiated_by: int = Field(index=True)
    created_at: datetime = Field(default_factory=utcnow, sa_type=_UTC_DATETIME)
    updated_at: datetime = Field(default_factory=utcnow, sa_type=_UTC_DATETIME)
    deleted_at: Optional[datetime] = Field(default=None, sa_type=_UTC_DATETIME)

    @property
    def is_in_progress(self) -> bool:
        return self.status in (ExecutionStatus.PENDING, ExecutionStatus.RUNNING)

    @property
    def is_finished(self) -> bool:
        return self.status in (ExecutionStatus.COMPLETED, ExecutionStatus.FAILED)

    def mark_running(self) -> None:
        self._transition(ExecutionStatus.RUNNING)
        self.started_at = utcnow()

    def add_completed_step(self, step: str) -> None:
        if self.status != ExecutionStatus.RUNNING:
            raise InvalidTransition(
                self.status,
                ExecutionStatus.RUNNING,
                f"Cannot record step '{step}' while execution is "
                f"{ExecutionStatus(self.status).name}.",
            )
        # reassign so the JSON column is flagged dirty
        self.steps_completed = [*(self.steps_completed or []), step]

    def mark_completed(self, result: Dict[str, Any]) -> None:
        self._finish(ExecutionStatus.COMPLETED, result)

    def mark_failed(self, result: Dict[str, Any]) -> None:
        self._finish(ExecutionStatus.FAILED, result)

    def _finish(self, status: ExecutionStatus, result: Dict[str, Any]) -> None:
        self._transition(status)
        self.completed_at = utcnow()
        self.result = dict(result)

    def _transition(self, status: ExecutionStatus) -> None:
        current = ExecutionStatus(self.status)
        if status not in _TRANSITIONS[current]:
            raise InvalidTransition(current, status)
        self.status = status


class Course(SQLModel, table=True):
    __tablename__ = "courses"

    id: Optional[int] = Field(default=None, primary_key=True)
    center_id: int = Field(index=True)
    title: str
    status: CourseStatus = Field(default=CourseStatus.DRAFT)
    enrollment_limit: Optional[int] = None
    created_at: datetime = Field(default_factory=utcnow, sa_type=_UTC_DATETIME)
    updated_at: datetime = Field(default_factory=utcnow, sa_type=_UTC_DATETIME)


class Section(SQLModel, table=True):
    __tablename__ = "sections"

    id: Optional[int] = Field(default=None, primary_key=True)
    course_id: int = Field(foreign_key="courses.id", index=True)
    title: str
    sort_order: int = 0


class Video(SQLModel, table=True):
    __tablename__ = "videos"

    id: Optional[int] = Field(default=None, primary_key=True)
    course_id: int = Field(foreign_key="courses.id", index=True)
    title: str
    lifecycle_status: VideoLifecycleStatus = Field(default=VideoLifecycleStatus.PENDING)


class Pdf(SQLModel, table=True):
    __tablename__ = "pdfs"

    id: Optional[int] = Field(default=None, primary_key=True)
    course_id: int = Field(foreign_key="courses.id", index=True)
    title: str
    file_path: Optional[str] = None


class User(SQLModel, table=True):
    """Admins and students. ``center_id`` is empty for unbranded accounts."""

    __tablename__ = "users"

    id: Optional[int] = Field(default=None, primary_key=True)
    name: str
    center_id: Optional[int] = Field(default=None, index=True)
    roles: List[str] = Field(default_factory=list, sa_column=Column(JSON))
    permissions: List[str] = Field(default_factory=list, sa_column=Column(JSON))
    is_super_admin: bool = False
    is_active: bool = True

    def has_role(self, role: str) -> bool:
        return role in (self.roles or [])


class Enrollment(SQLModel, table=True):
    __tablename__ = "enrollments"

    id: Optional[int] = Field(default=None, primary_key=True)
    user_id: int = Field(foreign_key="users.id", index=True)
    course_id: int = Field(foreign_key="courses.id", index=True)
    center_id: int = Field(index=True)
    status: EnrollmentStatus = Field(default=EnrollmentStatus.ACTIVE)
    enrolled_at: datetime = Field(default_factory=utcnow, sa_type=_UTC_DATETIME)
    notified_at: Optional[datetime] = Field(default=None, sa_type=_UTC_DATETIME)
    deleted_at: Optional[datetime] = Field(default=None, sa_type=_UTC_DATETIME)


class AuditLog(SQLModel, table=True):
    __tablename__ = "audit_logs"

    id: Optional[int] = Field(default=None, primary_key=True)
    actor_id: Optional[int] = Field(default=None, index=True)
    action: str = Field(index=True)
    subject_type: Optional[str] = None
    subject_id: Optional[int] = None
    details: Dict[str, Any] = Field(default_factory=dict, sa_column=Column(JSON))
    created_at: datetime = Field(default_factory=utcnow, sa_type=_UTC_DATETIME)
