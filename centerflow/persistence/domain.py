"""Lookups over the domain entities the agents read and mutate.

None of these commit. Writes are flushed into the caller's transaction and
become durable when the execution record is next persisted.
"""

from __future__ import annotations

from typing import List, Optional

from sqlalchemy import func
from sqlalchemy.ext.asyncio import AsyncSession
from sqlmodel import col, select

from ..db.models import Course, Enrollment, Pdf, Section, User, Video
from ..enums import EnrollmentStatus
from ..utils import utcnow


class CourseRepository:
    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def find_by_id(self, course_id: int) -> Optional[Course]:
        return await self._session.get(Course, course_id)

    async def sections_for(self, course_id: int) -> List[Section]:
        stmt = (
            select(Section)
            .where(Section.course_id == course_id)
            .order_by(col(Section.sort_order), col(Section.id))
        )
        return list((await self._session.execute(stmt)).scalars().all())

    async def videos_for(self, course_id: int) -> List[Video]:
        stmt = select(Video).where(Video.course_id == course_id).order_by(col(Video.id))
        return list((await self._session.execute(stmt)).scalars().all())

    async def pdfs_for(self, course_id: int) -> List[Pdf]:
        stmt = select(Pdf).where(Pdf.course_id == course_id).order_by(col(Pdf.id))
        return list((await self._session.execute(stmt)).scalars().all())

    async def save(self, course: Course) -> None:
        course.updated_at = utcnow()
        self._session.add(course)
        await self._session.flush()


class UserRepository:
    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def find_by_id(self, user_id: int) -> Optional[User]:
        return await self._session.get(User, user_id)


class EnrollmentRepository:
    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def find_active(self, user_id: int, course_id: int) -> Optional[Enrollment]:
        stmt = select(Enrollment).where(
            Enrollment.user_id == user_id,
            Enrollment.course_id == course_id,
            Enrollment.status == EnrollmentStatus.ACTIVE,
            col(Enrollment.deleted_at).is_(None),
        )
        return (await self._session.execute(stmt)).scalars().first()

    async def count_active_for_course(self, course_id: int) -> int:
        stmt = select(func.count()).select_from(Enrollment).where(
            Enrollment.course_id == course_id,
            Enrollment.status == EnrollmentStatus.ACTIVE,
            col(Enrollment.deleted_at).is_(None),
        )
        return (await self._session.execute(stmt)).scalar_one()

    async def add(self, enrollment: Enrollment) -> Enrollment:
        self._session.add(enrollment)
        await self._session.flush()
        return enrollment

    async def save(self, enrollment: Enrollment) -> None:
        self._session.add(enrollment)
        await self._session.flush()
