import asyncio

import pytest
from typer.testing import CliRunner

from centerflow.cli import app
from centerflow.db import Course, Database, Section, User


@pytest.fixture
def database_url(tmp_path, monkeypatch):
    monkeypatch.chdir(tmp_path)
    monkeypatch.delenv("CENTERFLOW_CONFIG", raising=False)
    url = f"sqlite+aiosqlite:///{tmp_path / 'cli.db'}"
    monkeypatch.setenv("CENTERFLOW_DATABASE_URL", url)
    return url


def _seed(url, *instances):
    async def seed():
        database = Database(url)
        await database.init_db()
        async with database.session() as session:
            session.add_all(instances)
            await session.commit()
        await database.dispose()

    asyncio.run(seed())
    return instances


def _seed_publishable(url):
    admin, course = _seed(
        url,
        User(name="Admin", center_id=1, permissions=["admin.courses.publish"]),
        Course(center_id=1, title="Geometry"),
    )
    _seed(url, Section(course_id=course.id, title="Intro"))
    return admin, course


def test_db_init_creates_schema(database_url):
    runner = CliRunner()
    result = runner.invoke(app, ["db", "init"])
    assert result.exit_code == 0, result.output
    assert "Database initialised" in result.output


def test_agents_list(database_url):
    (nobody,) = _seed(database_url, User(name="Nobody", center_id=1))
    runner = CliRunner()

    result = runner.invoke(app, ["agents", "list"])
    assert result.exit_code == 0, result.output
    assert "content_publishing" in result.output
    assert "parse_request" in result.output

    result = runner.invoke(app, ["agents", "list", "--actor-id", str(nobody.id)])
    assert result.exit_code == 0, result.output
    assert "content_publishing" not in result.output


def test_run_show_list_and_delete(database_url):
    admin, course = _seed_publishable(database_url)
    runner = CliRunner()

    result = runner.invoke(
        app,
        [
            "agents",
            "run",
            "content_publishing",
            "--actor-id",
            str(admin.id),
            "--center-id",
            "1",
            "--context",
            f'{{"course_id": {course.id}}}',
        ],
    )
    assert result.exit_code == 0, result.output
    assert '"success": true' in result.output
    assert '"new_status": "published"' in result.output

    result = runner.invoke(app, ["executions", "list", "--actor-id", str(admin.id)])
    assert result.exit_code == 0, result.output
    assert '"total": 1' in result.output

    result = runner.invoke(app, ["executions", "show", "1", "--actor-id", str(admin.id)])
    assert result.exit_code == 0, result.output
    assert '"status_label": "COMPLETED"' in result.output

    result = runner.invoke(app, ["executions", "stale", "--actor-id", str(admin.id)])
    assert result.exit_code == 0, result.output
    assert "No stale executions found" in result.output

    result = runner.invoke(app, ["executions", "delete", "1", "--actor-id", str(admin.id)])
    assert result.exit_code == 0, result.output
    assert "Execution 1 deleted" in result.output

    result = runner.invoke(app, ["executions", "show", "1", "--actor-id", str(admin.id)])
    assert result.exit_code == 1
    assert '"code": "NOT_FOUND"' in result.output


def test_run_reports_errors_as_json(database_url):
    admin, _ = _seed_publishable(database_url)
    runner = CliRunner()

    result = runner.invoke(
        app,
        [
            "agents",
            "run",
            "content_publishing",
            "--actor-id",
            str(admin.id),
            "--center-id",
            "1",
            "--context",
            '{"course_id": "abc"}',
        ],
    )
    assert result.exit_code == 1
    assert '"code": "VALIDATION_ERROR"' in result.output
    assert "Course ID must be numeric." in result.output

    result = runner.invoke(
        app,
        ["agents", "run", "analytics", "--actor-id", str(admin.id), "--center-id", "1"],
    )
    assert result.exit_code == 1
    assert '"code": "AGENT_NOT_REGISTERED"' in result.output


def test_unknown_actor_is_not_found(database_url):
    _seed(database_url)
    runner = CliRunner()

    result = runner.invoke(app, ["executions", "list", "--actor-id", "77"])
    assert result.exit_code == 1
    assert "User 77 not found." in result.output
