"""Session-scoped bundle of repositories and collaborators."""

from __future__ import annotations

from contextlib import asynccontextmanager
from typing import Any, AsyncIterator, Callable, Optional

from sqlalchemy.ext.asyncio import AsyncSession

from .enrollments import EnrollmentCreator, EnrollmentService
from .persistence.domain import CourseRepository, EnrollmentRepository, UserRepository
from .persistence.executions import ExecutionRepository
from .security.audit import AuditSink, SessionAuditSink


class UnitOfWork:
    """Everything one ``execute()`` call reads and writes, on one session.

    Agents are stateless and reach storage only through this object, so the
    runner's transaction boundary covers every write they make.
    """

    def __init__(
        self,
        session: AsyncSession,
        audit: Optional[AuditSink] = None,
        enrollment_service: Optional[EnrollmentCreator] = None,
    ) -> None:
        self.session = session
        self.executions = ExecutionRepository(session)
        self.courses = CourseRepository(session)
        self.users = UserRepository(session)
        self.enrollments = EnrollmentRepository(session)
        self.audit: AuditSink = audit or SessionAuditSink(session)
        self.enrollment_service: EnrollmentCreator = (
            enrollment_service or EnrollmentService(session)
        )

    async def commit(self) -> None:
        await self.session.commit()

    async def rollback(self) -> None:
        await self.session.rollback()

    async def refresh(self, *instances: Any) -> None:
        for instance in instances:
            if instance is not None and instance in self.session:
                await self.session.refresh(instance)

    @asynccontextmanager
    async def savepoint(self) -> AsyncIterator[None]:
        """Nest the block in a SAVEPOINT; an error undoes only the block's writes."""
        async with self.session.begin_nested():
            yield


UnitOfWorkFactory = Callable[[AsyncSession], UnitOfWork]
