"""Dialect-aware INSERT ... ON CONFLICT statements."""

from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.ext.asyncio import AsyncSession


def insert_for(db: AsyncSession, model):
    """Return an ``insert()`` construct supporting ``on_conflict_do_update``.

    PostgreSQL in production, SQLite in tests. Both render a single atomic
    statement, so racing writers converge on one row per unique key.
    """
    dialect = db.bind.dialect.name if db.bind is not None else "postgresql"
    if dialect == "sqlite":
        return sqlite.insert(model)
    return postgresql.insert(model)
