"""Course publishing workflow."""

from __future__ import annotations

import logging
from typing import Any, Dict, List

from ..db.models import Course
from ..enums import AgentType, AuditAction, CourseStatus, ExecutionPolicy, VideoLifecycleStatus
from ..errors import CenterMismatch, EntityNotFound, InvalidTarget, WorkflowStepError
from ..runner import StepRun
from ..security.context import Actor
from ..uow import UnitOfWork
from ..utils import is_integer_like
from .base import Agent

logger = logging.getLogger(__name__)


class ContentPublishingAgent(Agent):
    """Checks that a course's content is ready and publishes it.

    Runs in a single transaction: a failure at any step leaves the course
    exactly as it was, including any ``course.published`` audit entry.
    """

    agent_type = AgentType.CONTENT_PUBLISHING
    name = "Content Publishing"
    description = "Validates and publishes a course, ensuring all content is ready for students."
    steps = (
        "validate_sections",
        "validate_videos",
        "validate_pdfs",
        "verify_center",
        "publish_course",
        "create_audit_log",
    )
    policy = ExecutionPolicy.TRANSACTIONAL
    permission = "admin.courses.publish"

    def validate_context(self, context: Dict[str, Any]) -> Dict[str, List[str]]:
        errors: Dict[str, List[str]] = {}
        if context.get("course_id") is None:
            errors["course_id"] = ["Course ID is required."]
        elif not is_integer_like(context["course_id"]):
            errors["course_id"] = ["Course ID must be numeric."]
        return errors

    def validate_target(self, target: Any) -> Dict[str, List[str]]:
        if not isinstance(target, Course):
            return {"target": ["Target must be a Course."]}
        if target.status == CourseStatus.PUBLISHED:
            return {"course": ["Course is already published."]}
        if target.status == CourseStatus.ARCHIVED:
            return {"course": ["Cannot publish an archived course."]}
        return {}

    def can_execute(self, actor: Actor) -> bool:
        return actor.can(self.permission)

    async def resolve_target(self, uow: UnitOfWork, context: Dict[str, Any]) -> Course:
        course_id = int(context["course_id"])
        course = await uow.courses.find_by_id(course_id)
        if course is None:
            raise EntityNotFound("Course", course_id)
        errors = self.validate_target(course)
        if errors:
            raise InvalidTarget(errors)
        return course

    async def rollback(self, run: StepRun, completed_steps: List[str]) -> None:
        # every write happened inside the rolled-back transaction
        logger.debug(
            f"Publishing of course {run.target.id} rolled back after {completed_steps}"
        )

    # ------------------------------------------------------------------
    # Steps
    async def _step_validate_sections(self, run: StepRun) -> Dict[str, Any]:
        sections = await run.uow.courses.sections_for(run.target.id)
        if not sections:
            raise WorkflowStepError("Course must have at least one section.")
        return {"sections_count": len(sections), "validated": True}

    async def _step_validate_videos(self, run: StepRun) -> Dict[str, Any]:
        videos = await run.uow.courses.videos_for(run.target.id)
        if not videos:
            return {"videos_count": 0, "validated": True, "message": "No videos in course."}
        not_ready = [v.id for v in videos if v.lifecycle_status != VideoLifecycleStatus.READY]
        if not_ready:
            raise WorkflowStepError(
                "Some videos are not ready: " + ", ".join(str(i) for i in not_ready)
            )
        return {"videos_count": len(videos), "validated": True}

    async def _step_validate_pdfs(self, run: StepRun) -> Dict[str, Any]:
        pdfs = await run.uow.courses.pdfs_for(run.target.id)
        if not pdfs:
            return {"pdfs_count": 0, "validated": True, "message": "No PDFs in course."}
        missing = [p.id for p in pdfs if not p.file_path]
        if missing:
            raise WorkflowStepError(
                "Some PDFs are missing files: " + ", ".join(str(i) for i in missing)
            )
        return {"pdfs_count": len(pdfs), "validated": True}

    async def _step_verify_center(self, run: StepRun) -> Dict[str, Any]:
        course: Course = run.target
        if course.center_id != run.execution.center_id:
            raise CenterMismatch("Course does not belong to the specified center.")
        return {"center_id": course.center_id, "verified": True}

    async def _step_publish_course(self, run: StepRun) -> Dict[str, Any]:
        course: Course = run.target
        previous = CourseStatus(course.status)
        course.status = CourseStatus.PUBLISHED
        await run.uow.courses.save(course)
        return {
            "previous_status": previous.value,
            "new_status": CourseStatus.PUBLISHED.value,
            "published": True,
        }

    async def _step_create_audit_log(self, run: StepRun) -> Dict[str, Any]:
        # not contained: a failing audit write must undo the publish
        await run.uow.audit.log(
            run.actor,
            run.target,
            AuditAction.COURSE_PUBLISHED,
            {"agent_execution_id": run.execution_id, "agent_type": self.agent_type.value},
        )
        return {"audit_logged": True}
