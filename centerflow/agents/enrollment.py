"""Bulk enrollment workflow."""

from __future__ import annotations

import logging
from typing import Any, Dict, List

from ..db.models import Course, Enrollment, User
from ..enrollments import EnrollmentOutcomeKind
from ..enums import AgentType, AuditAction, EnrollmentStatus, ExecutionPolicy
from ..errors import CenterMismatch, EnrollmentLimitExceeded, EntityNotFound
from ..runner import StepRun
from ..security.context import Actor
from ..utils import is_integer_like
from .base import Agent

logger = logging.getLogger(__name__)

STUDENT_ROLE = "student"


class EnrollmentManagementAgent(Agent):
    """Enrolls a batch of students in one course.

    Partial success is expected: invalid students and per-student enrollment
    problems are collected into the result instead of failing the run. Only
    a missing or foreign course and an exceeded enrollment limit abort it.
    Each step's writes are committed with the step, so enrollments created
    before a failure stay in place.
    """

    agent_type = AgentType.ENROLLMENT
    name = "Bulk Enrollment"
    description = "Enrolls multiple students in a course at once, with validation and notifications."
    steps = (
        "parse_request",
        "validate_students",
        "validate_course",
        "check_limits",
        "create_enrollments",
        "send_notifications",
        "create_audit_logs",
    )
    policy = ExecutionPolicy.STEP_COMMIT
    permission = "admin.enrollments.create"

    def validate_context(self, context: Dict[str, Any]) -> Dict[str, List[str]]:
        errors: Dict[str, List[str]] = {}

        if context.get("course_id") is None:
            errors["course_id"] = ["Course ID is required."]
        elif not is_integer_like(context["course_id"]):
            errors["course_id"] = ["Course ID must be numeric."]

        student_ids = context.get("student_ids")
        if not isinstance(student_ids, list):
            errors["student_ids"] = ["Student IDs array is required."]
        elif not student_ids:
            errors["student_ids"] = ["At least one student ID is required."]
        elif not all(is_integer_like(value) for value in student_ids):
            errors["student_ids"] = ["Student IDs must be numeric."]

        return errors

    def can_execute(self, actor: Actor) -> bool:
        return actor.can(self.permission)

    async def rollback(self, run: StepRun, completed_steps: List[str]) -> None:
        # committed enrollments are kept; the failure result reports them
        created = run.results.get("create_enrollments", {}).get("created_count", 0)
        logger.debug(
            f"Enrollment execution {run.execution_id} stopped after {completed_steps}; "
            f"{created} enrollments kept"
        )

    def build_result(self, run: StepRun) -> Dict[str, Any]:
        result = super().build_result(run)
        result.update(self._enrollment_totals(run))
        return result

    def build_failure(self, run: StepRun, error: Exception) -> Dict[str, Any]:
        return {
            "success": False,
            "error": str(error),
            "steps": dict(run.results),
            **self._enrollment_totals(run),
            "steps_completed": list(run.completed_steps),
        }

    @staticmethod
    def _enrollment_totals(run: StepRun) -> Dict[str, Any]:
        created = run.results.get("create_enrollments", {})
        return {
            "enrollments_created": created.get("created_count", 0),
            "errors": list(created.get("errors", [])),
        }

    # ------------------------------------------------------------------
    # Steps
    async def _step_parse_request(self, run: StepRun) -> Dict[str, Any]:
        return {
            "course_id": int(run.context["course_id"]),
            "student_ids": [int(value) for value in run.context["student_ids"]],
        }

    async def _step_validate_students(self, run: StepRun) -> Dict[str, Any]:
        center_id = run.execution.center_id
        valid: List[User] = []
        invalid_ids: List[int] = []

        for student_id in run.results["parse_request"]["student_ids"]:
            student = await run.uow.users.find_by_id(student_id)
            if student is None:
                invalid_ids.append(student_id)
            # unbranded students may join any center's course
            elif student.center_id is not None and student.center_id != center_id:
                invalid_ids.append(student_id)
            elif not student.has_role(STUDENT_ROLE):
                invalid_ids.append(student_id)
            else:
                valid.append(student)

        run.state["students"] = valid
        return {"valid_students": [s.id for s in valid], "invalid_ids": invalid_ids}

    async def _step_validate_course(self, run: StepRun) -> Dict[str, Any]:
        course_id = run.results["parse_request"]["course_id"]
        course = await run.uow.courses.find_by_id(course_id)
        if course is None:
            raise EntityNotFound("Course", course_id)
        if course.center_id != run.execution.center_id:
            raise CenterMismatch("Course does not belong to the specified center.")
        await run.set_target(course)
        return {"course_id": course.id, "validated": True}

    async def _step_check_limits(self, run: StepRun) -> Dict[str, Any]:
        course: Course = run.target
        requested = len(run.state["students"])
        current = await run.uow.enrollments.count_active_for_course(course.id)
        limit = course.enrollment_limit
        if limit is not None and current + requested > limit:
            raise EnrollmentLimitExceeded(limit, current, requested)
        return {"allowed": True, "limit": limit, "current": current, "requested": requested}

    async def _step_create_enrollments(self, run: StepRun) -> Dict[str, Any]:
        course: Course = run.target
        created: List[Enrollment] = []
        skipped = 0
        errors: List[str] = []

        for student in run.state["students"]:
            try:
                # a failed insert must not poison the session for later students
                async with run.uow.savepoint():
                    outcome = await run.uow.enrollment_service.enroll(
                        student, course, EnrollmentStatus.ACTIVE, run.actor
                    )
            except Exception as exc:
                logger.warning(f"Enrolling student {student.id} in course {course.id} failed: {exc}")
                errors.append(f"Student {student.id}: {exc}")
                continue

            if outcome.kind == EnrollmentOutcomeKind.CREATED:
                created.append(outcome.enrollment)
            elif outcome.kind == EnrollmentOutcomeKind.ALREADY_ENROLLED:
                skipped += 1
            else:
                errors.append(f"Student {student.id}: {outcome.reason}")

        run.state["enrollments"] = created
        return {
            "created_count": len(created),
            "skipped_count": skipped,
            "enrollment_ids": [e.id for e in created],
            "errors": errors,
        }

    async def _step_send_notifications(self, run: StepRun) -> Dict[str, Any]:
        sent = 0
        for enrollment in run.state["enrollments"]:
            try:
                await run.uow.enrollment_service.send_enrollment_notification(enrollment)
            except Exception as exc:
                logger.warning(f"Notification for enrollment {enrollment.id} failed: {exc}")
                continue
            sent += 1
        return {"sent_count": sent}

    async def _step_create_audit_logs(self, run: StepRun) -> Dict[str, Any]:
        enrollments: List[Enrollment] = run.state["enrollments"]
        await run.uow.audit.log(
            run.actor,
            run.target,
            AuditAction.ENROLLMENTS_CREATED,
            {
                "agent_type": self.agent_type.value,
                "execution_id": run.execution_id,
                "enrollments_created": len(enrollments),
                "student_ids": [e.user_id for e in enrollments],
            },
        )
        return {"logged": True}
