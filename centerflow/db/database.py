from __future__ import annotations

from contextlib import asynccontextmanager
from typing import Any, AsyncIterator, Dict

from sqlalchemy import event
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool
from sqlmodel import SQLModel

from . import models  # noqa: F401  registers the tables on SQLModel.metadata

_MEMORY_URLS = ("sqlite+aiosqlite://", "sqlite+aiosqlite:///:memory:")


class Database:
    """Async engine plus session factory for the execution core."""

    def __init__(self, database_url: str, echo: bool = False) -> None:
        self.url = database_url
        engine_kwargs: Dict[str, Any] = {"echo": echo, "future": True}
        if database_url.startswith("sqlite"):
            engine_kwargs["connect_args"] = {"check_same_thread": False}
            if database_url in _MEMORY_URLS:
                # one shared connection, otherwise every session sees an empty db
                engine_kwargs["poolclass"] = StaticPool
        self.engine = create_async_engine(database_url, **engine_kwargs)
        if database_url.startswith("sqlite"):
            _emit_sqlite_begin(self.engine.sync_engine)
        # rollback still expires instances; callers refresh what they reuse
        self._sessionmaker = async_sessionmaker(self.engine, expire_on_commit=False)

    async def init_db(self) -> None:
        async with self.engine.begin() as conn:
            await conn.run_sync(SQLModel.metadata.create_all)

    async def dispose(self) -> None:
        await self.engine.dispose()

    @asynccontextmanager
    async def session(self) -> AsyncIterator[AsyncSession]:
        async with self._sessionmaker() as session:
            yield session


def _emit_sqlite_begin(sync_engine: Any) -> None:
    """Let SQLAlchemy own BEGIN on SQLite so SAVEPOINTs nest inside it.

    The driver otherwise starts transactions lazily on its own and a
    ``begin_nested()`` savepoint can end up committing the outer work.
    """

    @event.listens_for(sync_engine, "connect")
    def _disable_driver_begin(dbapi_connection: Any, connection_record: Any) -> None:
        dbapi_connection.isolation_level = None

    @event.listens_for(sync_engine, "begin")
    def _begin(conn: Any) -> None:
        conn.exec_driver_sql("BEGIN")
