from typing import List, Optional

import pytest
import pytest_asyncio
from sqlmodel import select

from centerflow.db import Course, Database, Pdf, Section, User, Video
from centerflow.enums import CourseStatus, VideoLifecycleStatus
from centerflow.registry import build_registry
from centerflow.security import Actor
from centerflow.service import ExecutionService

PUBLISH = "admin.courses.publish"
ENROLL = "admin.enrollments.create"


@pytest_asyncio.fixture
async def database(tmp_path):
    db = Database(f"sqlite+aiosqlite:///{tmp_path / 'centerflow.db'}")
    await db.init_db()
    yield db
    await db.dispose()


@pytest.fixture
def registry():
    return build_registry()


@pytest.fixture
def service(database, registry):
    return ExecutionService(database, registry)


@pytest.fixture
def seed(database):
    """Persist instances in their own session and return them with ids."""

    async def _seed(*instances):
        async with database.session() as session:
            session.add_all(instances)
            await session.commit()
        return instances[0] if len(instances) == 1 else instances

    return _seed


@pytest.fixture
def fetch(database):
    async def _fetch(model, ident):
        async with database.session() as session:
            return await session.get(model, ident)

    return _fetch


@pytest.fixture
def fetch_all(database):
    async def _fetch_all(model) -> List:
        async with database.session() as session:
            stmt = select(model).order_by(model.id)
            return list((await session.execute(stmt)).scalars().all())

    return _fetch_all


@pytest.fixture
def make_course(seed):
    """Seed a course and its content; defaults produce a publishable draft."""

    async def _make_course(
        center_id: int = 1,
        status: CourseStatus = CourseStatus.DRAFT,
        sections: int = 1,
        videos: Optional[List[VideoLifecycleStatus]] = None,
        pdf_paths: Optional[List[Optional[str]]] = None,
        enrollment_limit: Optional[int] = None,
    ) -> Course:
        course = await seed(
            Course(
                center_id=center_id,
                title="Algebra I",
                status=status,
                enrollment_limit=enrollment_limit,
            )
        )
        content = [
            Section(course_id=course.id, title=f"Section {i}", sort_order=i)
            for i in range(sections)
        ]
        for i, video_status in enumerate(
            videos if videos is not None else [VideoLifecycleStatus.READY]
        ):
            content.append(
                Video(course_id=course.id, title=f"Video {i}", lifecycle_status=video_status)
            )
        for i, path in enumerate(pdf_paths if pdf_paths is not None else ["notes.pdf"]):
            content.append(Pdf(course_id=course.id, title=f"Pdf {i}", file_path=path))
        if content:
            await seed(*content)
        return course

    return _make_course


@pytest.fixture
def make_student(seed):
    async def _make_student(
        center_id: Optional[int] = 1,
        roles: Optional[List[str]] = None,
        is_active: bool = True,
    ) -> User:
        return await seed(
            User(
                name="Student",
                center_id=center_id,
                roles=roles if roles is not None else ["student"],
                is_active=is_active,
            )
        )

    return _make_student


@pytest.fixture
def center_admin():
    return Actor(id=100, name="Center Admin", center_id=1, permissions=[PUBLISH, ENROLL])


@pytest.fixture
def global_admin():
    return Actor(id=1, name="Root", center_id=None, is_super_admin=True)
