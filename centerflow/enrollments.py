"""Enrollment collaborator used by the bulk enrollment agent."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Awaitable, Callable, Optional, Protocol

from sqlalchemy.ext.asyncio import AsyncSession

from .db.models import Course, Enrollment, User
from .enums import CourseStatus, EnrollmentStatus
from .persistence.domain import EnrollmentRepository
from .security.context import Actor
from .utils import utcnow

logger = logging.getLogger(__name__)

Notifier = Callable[[Enrollment], Awaitable[None]]


class EnrollmentOutcomeKind(str, Enum):
    CREATED = "created"
    ALREADY_ENROLLED = "already_enrolled"
    REJECTED = "rejected"


@dataclass(frozen=True)
class EnrollmentOutcome:
    """What happened to one enroll attempt."""

    kind: EnrollmentOutcomeKind
    enrollment: Optional[Enrollment] = None
    reason: Optional[str] = None

    @classmethod
    def created(cls, enrollment: Enrollment) -> "EnrollmentOutcome":
        return cls(EnrollmentOutcomeKind.CREATED, enrollment=enrollment)

    @classmethod
    def already_enrolled(cls, enrollment: Optional[Enrollment] = None) -> "EnrollmentOutcome":
        return cls(EnrollmentOutcomeKind.ALREADY_ENROLLED, enrollment=enrollment)

    @classmethod
    def rejected(cls, reason: str) -> "EnrollmentOutcome":
        return cls(EnrollmentOutcomeKind.REJECTED, reason=reason)


class EnrollmentCreator(Protocol):
    async def enroll(
        self, student: User, course: Course, status: EnrollmentStatus, actor: Actor
    ) -> EnrollmentOutcome:
        """Enroll ``student`` in ``course``; never raises for a duplicate."""

    async def send_enrollment_notification(self, enrollment: Enrollment) -> None:
        """Tell the student about ``enrollment``."""


class EnrollmentService:
    """SQL-backed :class:`EnrollmentCreator`.

    Delivery of notifications is delegated to ``notifier``; without one the
    notification is only logged.
    """

    def __init__(self, session: AsyncSession, notifier: Optional[Notifier] = None) -> None:
        self._enrollments = EnrollmentRepository(session)
        self._notifier = notifier

    async def enroll(
        self, student: User, course: Course, status: EnrollmentStatus, actor: Actor
    ) -> EnrollmentOutcome:
        if not student.is_active:
            return EnrollmentOutcome.rejected("Student account is inactive.")
        if course.status == CourseStatus.ARCHIVED:
            return EnrollmentOutcome.rejected("Course is archived.")

        existing = await self._enrollments.find_active(student.id, course.id)
        if existing is not None:
            return EnrollmentOutcome.already_enrolled(existing)

        enrollment = await self._enrollments.add(
            Enrollment(
                user_id=student.id,
                course_id=course.id,
                center_id=course.center_id,
                status=status,
            )
        )
        logger.debug(
            f"Actor {actor.id} enrolled student {student.id} in course {course.id}"
        )
        return EnrollmentOutcome.created(enrollment)

    async def send_enrollment_notification(self, enrollment: Enrollment) -> None:
        if self._notifier is not None:
            await self._notifier(enrollment)
        else:
            logger.info(
                f"Enrollment notification for student {enrollment.user_id} "
                f"in course {enrollment.course_id}"
            )
        enrollment.notified_at = utcnow()
        await self._enrollments.save(enrollment)
