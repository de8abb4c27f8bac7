"""Command line interface for operating centerflow."""

from __future__ import annotations

import asyncio
import json
import logging
from datetime import timedelta
from typing import Any, Awaitable, Callable, Optional, TypeVar

import typer

from centerflow.config import load_config
from centerflow.db import Database
from centerflow.enums import AgentType, ExecutionStatus
from centerflow.errors import CenterflowError, EntityNotFound
from centerflow.persistence import ExecutionFilters, UserRepository, get_database
from centerflow.presenters import (
    serialize_agents,
    serialize_error,
    serialize_execution,
    serialize_page,
)
from centerflow.registry import build_registry
from centerflow.security import Actor
from centerflow.service import ExecutionService

T = TypeVar("T")

app = typer.Typer(help="CLI for centerflow agent executions")

# Command groups
db_app = typer.Typer(help="Commands for managing the database")
agents_app = typer.Typer(help="Commands for listing and running agents")
executions_app = typer.Typer(help="Commands for inspecting executions")

app.add_typer(db_app, name="db")
app.add_typer(agents_app, name="agents")
app.add_typer(executions_app, name="executions")


@app.callback()
def main() -> None:
    """centerflow CLI entry point."""
    config = load_config()
    logging.basicConfig(
        level=config.log_level.upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


def _echo_json(data: Any) -> None:
    typer.echo(json.dumps(data, indent=2, default=str))


def _run(fn: Callable[[ExecutionService], Awaitable[T]]) -> T:
    """Run ``fn`` against a service wired from configuration.

    Centerflow errors are printed as JSON and end the command with exit code 1.
    """

    async def runner() -> T:
        config = load_config()
        database = get_database(config=config)
        service = ExecutionService(database, build_registry(config.agents), config=config)
        try:
            return await fn(service)
        finally:
            await database.dispose()

    try:
        return asyncio.run(runner())
    except CenterflowError as exc:
        _echo_json(serialize_error(exc))
        raise typer.Exit(code=1)


async def _load_actor(database: Database, actor_id: int) -> Actor:
    async with database.session() as session:
        user = await UserRepository(session).find_by_id(actor_id)
    if user is None:
        raise EntityNotFound("User", actor_id)
    return Actor.from_user(user)


@db_app.command("init")
def db_init() -> None:
    """Create the database tables."""

    async def init(service: ExecutionService) -> None:
        await service.database.init_db()

    _run(init)
    typer.echo("Database initialised")


@agents_app.command("list")
def agents_list(
    actor_id: Optional[int] = typer.Option(
        None, help="Only list agents this user may run"
    ),
) -> None:
    """
    List registered agents with their steps.

    Example:
        centerflow agents list
        centerflow agents list --actor-id 1
    """

    async def list_agents(service: ExecutionService) -> Any:
        if actor_id is None:
            return service.registry.descriptors()
        actor = await _load_actor(service.database, actor_id)
        return service.get_available_agents(actor)

    _echo_json(serialize_agents(_run(list_agents)))


@agents_app.command("run")
def agents_run(
    agent_type: str,
    actor_id: int = typer.Option(..., help="User running the agent"),
    center_id: int = typer.Option(..., help="Center the execution belongs to"),
    context: str = typer.Option("{}", help="Workflow context as a JSON object"),
) -> None:
    """
    Execute an agent and print its result.

    Example:
        centerflow agents run content_publishing --actor-id 1 --center-id 1 \\
            --context '{"course_id": 5}'
    """
    try:
        payload = json.loads(context)
    except json.JSONDecodeError as exc:
        raise typer.BadParameter(f"context is not valid JSON: {exc}")
    if not isinstance(payload, dict):
        raise typer.BadParameter("context must be a JSON object")

    async def run(service: ExecutionService) -> Any:
        actor = await _load_actor(service.database, actor_id)
        return await service.execute(agent_type, actor, center_id, payload)

    _echo_json(_run(run))


@executions_app.command("list")
def executions_list(
    actor_id: int = typer.Option(..., help="User whose scope limits the listing"),
    page: int = typer.Option(1, min=1),
    per_page: Optional[int] = typer.Option(None, min=1),
    center_id: Optional[int] = None,
    agent_type: Optional[AgentType] = None,
    status: Optional[str] = typer.Option(
        None, help="pending, running, completed or failed"
    ),
    initiated_by: Optional[int] = None,
) -> None:
    """List executions newest first."""
    try:
        status_value = ExecutionStatus[status.upper()] if status else None
    except KeyError:
        raise typer.BadParameter(f"unknown status: {status}")

    async def list_executions(service: ExecutionService) -> Any:
        actor = await _load_actor(service.database, actor_id)
        filters = ExecutionFilters(
            page=page,
            per_page=min(
                per_page or service.config.pagination.default_per_page,
                service.config.pagination.max_per_page,
            ),
            center_id=center_id,
            agent_type=agent_type,
            status=status_value,
            initiated_by=initiated_by,
        )
        return await service.paginate_for_admin(actor, filters)

    _echo_json(serialize_page(_run(list_executions)))


@executions_app.command("show")
def executions_show(
    execution_id: int,
    actor_id: int = typer.Option(..., help="User requesting the execution"),
) -> None:
    """Show one execution with its result and completed steps."""

    async def show(service: ExecutionService) -> Any:
        actor = await _load_actor(service.database, actor_id)
        return await service.get_execution(actor, execution_id)

    _echo_json(serialize_execution(_run(show)))


@executions_app.command("stale")
def executions_stale(
    actor_id: int = typer.Option(..., help="User whose scope limits the query"),
    minutes: Optional[int] = typer.Option(
        None, min=1, help="Idle threshold; defaults to stale_after_minutes"
    ),
) -> None:
    """List executions stuck in Running. Nothing is repaired."""

    async def stale(service: ExecutionService) -> Any:
        actor = await _load_actor(service.database, actor_id)
        older_than = timedelta(minutes=minutes) if minutes else None
        return await service.find_stale_executions(actor, older_than)

    executions = _run(stale)
    if not executions:
        typer.echo("No stale executions found")
        return
    _echo_json([serialize_execution(e) for e in executions])


@executions_app.command("delete")
def executions_delete(
    execution_id: int,
    actor_id: int = typer.Option(..., help="User deleting the execution"),
) -> None:
    """Soft-delete a finished execution."""

    async def delete(service: ExecutionService) -> Any:
        actor = await _load_actor(service.database, actor_id)
        return await service.delete_execution(actor, execution_id)

    _run(delete)
    typer.echo(f"Execution {execution_id} deleted")


if __name__ == "__main__":
    app()
