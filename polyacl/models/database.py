"""
Database connection and session management.
"""

from typing import Any

from sqlalchemy import event
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    create_async_engine,
    async_sessionmaker,
)

from polyacl.core.config import settings


def configure_sqlite(engine: AsyncEngine) -> None:
    """
    Make SQLite connections behave like the other backends.

    - Foreign keys are enforced, so the ON DELETE CASCADE from the
      association tables to permissions/roles applies.
    - The driver's own transaction handling is switched off and SQLAlchemy
      emits BEGIN itself, so SAVEPOINTs (``begin_nested``) roll back
      correctly.
    """
    if engine.dialect.name != "sqlite":
        return

    @event.listens_for(engine.sync_engine, "connect")
    def _on_connect(dbapi_connection: Any, connection_record: Any) -> None:
        dbapi_connection.isolation_level = None
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()

    @event.listens_for(engine.sync_engine, "begin")
    def _on_begin(conn: Any) -> None:
        conn.exec_driver_sql("BEGIN")


# Create async engine
engine = create_async_engine(
    settings.database.url,
    **settings.database.engine_options(),
)
configure_sqlite(engine)

# Session factory
async_session_factory = async_sessionmaker(
    engine,
    class_=AsyncSession,
    expire_on_commit=False,
)


async def init_db() -> None:
    """Initialize database (create tables)."""
    from .base import Base
    from . import permission, role, associations, user  # noqa: F401

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)


async def close_db() -> None:
    """Close database connections."""
    await engine.dispose()
