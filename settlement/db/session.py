from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from typing import AsyncIterator

from sqlalchemy import event
from sqlalchemy.ext.asyncio import (AsyncEngine, AsyncSession, async_sessionmaker,
                                    create_async_engine)

from settlement.core.config import make_async_db_url

_engine: AsyncEngine | None = None
_sessionmaker: async_sessionmaker[AsyncSession] | None = None

log = logging.getLogger(__name__)


def _enable_sqlite_savepoints(engine: AsyncEngine) -> None:
    """pysqlite defers BEGIN until the first DML statement, which breaks SAVEPOINT nesting.

    Take over transaction control so begin_nested() stays inside the outer transaction.
    BEGIN IMMEDIATE takes the write lock up front: a second writer waits for the first
    to commit and then reads its result instead of failing with "database is locked"
    on its first write.
    """

    @event.listens_for(engine.sync_engine, "connect")
    def _on_connect(dbapi_connection, connection_record):
        dbapi_connection.isolation_level = None

    @event.listens_for(engine.sync_engine, "begin")
    def _on_begin(conn):
        conn.exec_driver_sql("BEGIN IMMEDIATE")


def create_engine(database_url: str, *, echo: bool = False) -> AsyncEngine:
    url = make_async_db_url(database_url)
    if url.startswith("sqlite+aiosqlite://"):
        # busy timeout (seconds) a writer waits for the lock held by another transaction
        engine = create_async_engine(url, echo=echo, connect_args={"timeout": 30})
        _enable_sqlite_savepoints(engine)
        return engine
    return create_async_engine(url, echo=echo, pool_pre_ping=True)


def make_sessionmaker(engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(engine, expire_on_commit=False)


def init_engine(database_url: str, *, echo: bool = False) -> None:
    global _engine, _sessionmaker
    if _engine is not None:
        return
    _engine = create_engine(database_url, echo=echo)
    _sessionmaker = make_sessionmaker(_engine)
    log.info("db_engine_initialized")


async def dispose_engine() -> None:
    global _engine, _sessionmaker
    if _engine is None:
        return
    await _engine.dispose()
    _engine = None
    _sessionmaker = None
    log.info("db_engine_disposed")


def get_sessionmaker() -> async_sessionmaker[AsyncSession]:
    if _sessionmaker is None:
        raise RuntimeError("DB engine not initialized. Call init_engine() first.")
    return _sessionmaker


@asynccontextmanager
async def session_scope(
    sessionmaker: async_sessionmaker[AsyncSession] | None = None,
) -> AsyncIterator[AsyncSession]:
    """AsyncSession context manager; rolls back when the block raises.

    Uses the process-wide sessionmaker unless one is passed in. Committing is left
    to the caller.
    """
    sm = sessionmaker or get_sessionmaker()
    async with sm() as session:
        try:
            yield session
        except Exception:
            await session.rollback()
            raise
