from datetime import timedelta

import pytest

from centerflow.config import CenterflowConfig, PaginationConfig
from centerflow.db import AgentExecution
from centerflow.enums import AgentType, ExecutionStatus
from centerflow.errors import (
    AgentNotRegistered,
    ExecutionNotFound,
    InvalidTransition,
    ScopeAccessDenied,
    ValidationFailed,
)
from centerflow.persistence import ExecutionFilters
from centerflow.registry import build_registry
from centerflow.security import Actor, CenterScopeService
from centerflow.service import ExecutionService
from centerflow.utils import utcnow


async def _execution(seed, center_id=1, status=ExecutionStatus.COMPLETED, **fields):
    return await seed(
        AgentExecution(
            center_id=center_id,
            agent_type=AgentType.CONTENT_PUBLISHING,
            status=status,
            context={"course_id": 1},
            initiated_by=100,
            **fields,
        )
    )


@pytest.mark.asyncio
@pytest.mark.parametrize("agent_type", ["analytics", AgentType.NOTIFICATION, "bogus"])
async def test_unregistered_agent_creates_no_record(
    service, center_admin, fetch_all, agent_type
):
    with pytest.raises(AgentNotRegistered):
        await service.execute(agent_type, center_admin, 1, {"course_id": 1})

    assert await fetch_all(AgentExecution) == []


@pytest.mark.asyncio
async def test_agent_missing_from_registry_is_rejected(database, center_admin, fetch_all):
    service = ExecutionService(database, build_registry([AgentType.ENROLLMENT]))

    with pytest.raises(AgentNotRegistered, match="content_publishing"):
        await service.execute(AgentType.CONTENT_PUBLISHING, center_admin, 1, {"course_id": 1})

    assert await fetch_all(AgentExecution) == []


@pytest.mark.asyncio
async def test_out_of_scope_center_is_denied(service, center_admin, fetch_all):
    with pytest.raises(ScopeAccessDenied):
        await service.execute(AgentType.CONTENT_PUBLISHING, center_admin, 2, {"course_id": 1})

    assert await fetch_all(AgentExecution) == []


@pytest.mark.asyncio
async def test_actor_without_permission_is_rejected(service, fetch_all):
    actor = Actor(id=7, center_id=1, permissions=["admin.enrollments.create"])

    with pytest.raises(ValidationFailed) as exc_info:
        await service.execute(AgentType.CONTENT_PUBLISHING, actor, 1, {"course_id": 1})

    assert exc_info.value.errors == {"agent": ["You are not authorized to execute this agent."]}
    assert await fetch_all(AgentExecution) == []


@pytest.mark.asyncio
async def test_invalid_context_is_rejected(service, center_admin, fetch_all):
    with pytest.raises(ValidationFailed) as exc_info:
        await service.execute(AgentType.ENROLLMENT, center_admin, 1, {"student_ids": []})

    assert exc_info.value.errors == {
        "course_id": ["Course ID is required."],
        "student_ids": ["At least one student ID is required."],
    }
    assert await fetch_all(AgentExecution) == []


@pytest.mark.asyncio
async def test_paginate_is_scoped_and_newest_first(service, seed, center_admin, global_admin):
    first = await _execution(seed, center_id=1)
    await _execution(seed, center_id=2)
    second = await _execution(seed, center_id=1, status=ExecutionStatus.FAILED)

    page = await service.paginate_for_admin(center_admin)
    assert [e.id for e in page.items] == [second.id, first.id]
    assert page.total == 2
    assert page.per_page == 15

    everything = await service.paginate_for_admin(global_admin)
    assert everything.total == 3

    failed = await service.paginate_for_admin(
        global_admin, ExecutionFilters(status=ExecutionStatus.FAILED)
    )
    assert [e.id for e in failed.items] == [second.id]

    foreign = await service.paginate_for_admin(center_admin, ExecutionFilters(center_id=2))
    assert foreign.total == 0


@pytest.mark.asyncio
async def test_paginate_pages(service, seed, global_admin):
    for _ in range(5):
        await _execution(seed)

    page = await service.paginate_for_admin(global_admin, ExecutionFilters(page=2, per_page=2))

    assert len(page.items) == 2
    assert page.total == 5
    assert page.last_page == 3


@pytest.mark.asyncio
async def test_get_execution_checks_scope(service, seed, center_admin):
    own = await _execution(seed, center_id=1)
    foreign = await _execution(seed, center_id=2)

    assert (await service.get_execution(center_admin, own.id)).id == own.id
    with pytest.raises(ScopeAccessDenied):
        await service.get_execution(center_admin, foreign.id)
    with pytest.raises(ExecutionNotFound):
        await service.get_execution(center_admin, 12345)


def test_available_agents_follow_permissions(service, global_admin):
    enroller = Actor(id=5, center_id=1, permissions=["admin.enrollments.create"])

    assert list(service.get_available_agents(enroller)) == [AgentType.ENROLLMENT]
    assert set(service.get_available_agents(global_admin)) == {
        AgentType.CONTENT_PUBLISHING,
        AgentType.ENROLLMENT,
    }
    assert service.get_available_agents(Actor(id=6, center_id=1)) == {}


@pytest.mark.asyncio
async def test_find_stale_executions_only_reports(service, seed, global_admin, fetch):
    long_ago = utcnow() - timedelta(hours=3)
    stuck = await _execution(
        seed, status=ExecutionStatus.RUNNING, started_at=long_ago, updated_at=long_ago
    )
    await _execution(seed, status=ExecutionStatus.RUNNING)
    await _execution(seed, status=ExecutionStatus.FAILED, updated_at=long_ago)

    stale = await service.find_stale_executions(global_admin)

    assert [e.id for e in stale] == [stuck.id]
    assert (await fetch(AgentExecution, stuck.id)).status == ExecutionStatus.RUNNING
    assert await service.find_stale_executions(global_admin, timedelta(hours=4)) == []


@pytest.mark.asyncio
async def test_delete_execution_hides_finished_records(service, seed, center_admin, fetch):
    finished = await _execution(seed)
    running = await _execution(seed, status=ExecutionStatus.RUNNING)

    await service.delete_execution(center_admin, finished.id)

    with pytest.raises(ExecutionNotFound):
        await service.get_execution(center_admin, finished.id)
    assert (await fetch(AgentExecution, finished.id)).deleted_at is not None
    assert (await service.paginate_for_admin(center_admin)).total == 1

    with pytest.raises(InvalidTransition):
        await service.delete_execution(center_admin, running.id)


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "agent_type, context",
    [
        (AgentType.CONTENT_PUBLISHING, {"course_id": "²"}),
        (AgentType.ENROLLMENT, {"course_id": "١٢", "student_ids": [1]}),
        (AgentType.ENROLLMENT, {"course_id": 1, "student_ids": ["³"]}),
    ],
)
async def test_non_ascii_digits_are_rejected_before_any_record(
    service, center_admin, fetch_all, agent_type, context
):
    with pytest.raises(ValidationFailed):
        await service.execute(agent_type, center_admin, 1, context)

    assert await fetch_all(AgentExecution) == []


@pytest.mark.asyncio
async def test_per_page_follows_configured_maximum(database, registry, seed, global_admin):
    for _ in range(3):
        await _execution(seed)
    config = CenterflowConfig(pagination=PaginationConfig(max_per_page=200))
    service = ExecutionService(database, registry, config=config)

    wide = await service.paginate_for_admin(global_admin, ExecutionFilters(per_page=150))
    assert wide.per_page == 150
    assert wide.total == 3

    clamped = await service.paginate_for_admin(global_admin, ExecutionFilters(per_page=500))
    assert clamped.per_page == 200


@pytest.mark.asyncio
async def test_execution_access_goes_through_scope_checker(database, registry, seed, center_admin):
    class RecordingScope(CenterScopeService):
        def __init__(self):
            self.checked = []

        def assert_same_scope(self, actor, execution):
            self.checked.append((actor.id, execution.id))
            super().assert_same_scope(actor, execution)

    scope = RecordingScope()
    service = ExecutionService(database, registry, scope=scope)
    own = await _execution(seed, center_id=1)
    foreign = await _execution(seed, center_id=2)

    await service.get_execution(center_admin, own.id)
    with pytest.raises(ScopeAccessDenied):
        await service.delete_execution(center_admin, foreign.id)

    assert scope.checked == [(center_admin.id, own.id), (center_admin.id, foreign.id)]
    assert (await service.get_execution(center_admin, own.id)).deleted_at is None
