"""Tests for configuration loading."""

import pytest
from pydantic import ValidationError

from centerflow.config import load_config
from centerflow.enums import AgentType
from centerflow.persistence import get_database, normalize_database_url


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    for name in ("CENTERFLOW_CONFIG", "CENTERFLOW_DATABASE_URL", "DATABASE_URL"):
        monkeypatch.delenv(name, raising=False)


def test_defaults_without_file(tmp_path, monkeypatch):
    monkeypatch.chdir(tmp_path)

    config = load_config()
    assert config.database_url == "sqlite+aiosqlite:///centerflow.db"
    assert config.agents == [AgentType.CONTENT_PUBLISHING, AgentType.ENROLLMENT]
    assert config.pagination.default_per_page == 15
    assert config.stale_after_minutes == 60


def test_load_config_from_env(tmp_path, monkeypatch):
    config_path = tmp_path / "config.yaml"
    config_path.write_text(
        """
database_url: sqlite:///from-file.db
log_level: DEBUG
agents:
  - enrollment
pagination:
  default_per_page: 25
stale_after_minutes: 5
"""
    )
    monkeypatch.setenv("CENTERFLOW_CONFIG", str(config_path))

    config = load_config()
    assert config.database_url == "sqlite:///from-file.db"
    assert config.log_level == "DEBUG"
    assert config.agents == [AgentType.ENROLLMENT]
    assert config.pagination.default_per_page == 25
    assert config.pagination.max_per_page == 100
    assert config.stale_after_minutes == 5


def test_database_url_env_overrides_file(tmp_path, monkeypatch):
    config_path = tmp_path / "config.yaml"
    config_path.write_text("database_url: sqlite:///from-file.db\n")
    monkeypatch.setenv("CENTERFLOW_DATABASE_URL", "sqlite:///from-env.db")

    config = load_config(str(config_path))
    assert config.database_url == "sqlite:///from-env.db"


def test_unknown_agent_tag_fails_validation(tmp_path):
    config_path = tmp_path / "config.yaml"
    config_path.write_text("agents: [reporting]\n")

    with pytest.raises(ValidationError):
        load_config(str(config_path))


@pytest.mark.parametrize(
    "url, expected",
    [
        ("sqlite:///x.db", "sqlite+aiosqlite:///x.db"),
        ("sqlite+aiosqlite:///x.db", "sqlite+aiosqlite:///x.db"),
        ("postgres://u@h/db", "postgresql+asyncpg://u@h/db"),
        ("postgresql://u@h/db", "postgresql+asyncpg://u@h/db"),
    ],
)
def test_normalize_database_url(url, expected):
    assert normalize_database_url(url) == expected


def test_unsupported_backend_is_rejected():
    with pytest.raises(ValueError, match="Unsupported database backend"):
        normalize_database_url("mysql://u@h/db")


def test_get_database_uses_env(tmp_path, monkeypatch):
    monkeypatch.chdir(tmp_path)
    monkeypatch.setenv("DATABASE_URL", f"sqlite:///{tmp_path / 'env.db'}")

    database = get_database()
    assert database.url == f"sqlite+aiosqlite:///{tmp_path / 'env.db'}"
