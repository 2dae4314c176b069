"""
Async SQLAlchemy engine & session factory.

PostgreSQL (asyncpg) in deployments; SQLite (aiosqlite) is accepted for
local runs and gets foreign-key enforcement switched on per connection.
"""

from __future__ import annotations

from typing import Any

from sqlalchemy import event
from sqlalchemy.engine import make_url
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine

from leaftrack.core.config import settings


def _engine_args(url: str) -> dict[str, Any]:
    args: dict[str, Any] = {"echo": False, "pool_pre_ping": True}
    backend = make_url(url).get_backend_name()
    if backend == "postgresql":
        args.update(pool_size=20, max_overflow=10, pool_recycle=300)
    elif backend == "sqlite":
        args["connect_args"] = {"check_same_thread": False}
    return args


def _enable_sqlite_foreign_keys(dbapi_connection, _record) -> None:
    cursor = dbapi_connection.cursor()
    cursor.execute("PRAGMA foreign_keys=ON")
    cursor.close()


def build_engine(url: str) -> AsyncEngine:
    async_engine = create_async_engine(url, **_engine_args(url))
    if async_engine.dialect.name == "sqlite":
        event.listen(async_engine.sync_engine, "connect", _enable_sqlite_foreign_keys)
    return async_engine


engine = build_engine(settings.DATABASE_URL)

async_session_factory = async_sessionmaker(
    engine,
    class_=AsyncSession,
    expire_on_commit=False,
)
