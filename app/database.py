"""Async SQLAlchemy engine setup for the user document store."""

from __future__ import annotations

from typing import NamedTuple

from sqlalchemy import MetaData, inspect, text
from sqlalchemy.engine import Connection
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.orm import DeclarativeBase


class Base(DeclarativeBase):
    """Declarative base shared by every ORM table."""

    metadata = MetaData()


class ColumnMigration(NamedTuple):
    table: str
    column: str
    ddl: str
    backfill: str | None = None


# Additive changes for databases created by earlier releases.
COLUMN_MIGRATIONS: tuple[ColumnMigration, ...] = (
    ColumnMigration(
        "users",
        "tracked_items",
        "ALTER TABLE users ADD COLUMN tracked_items JSON",
        "UPDATE users SET tracked_items = '[]' WHERE tracked_items IS NULL",
    ),
    ColumnMigration(
        "users",
        "updated_at",
        "ALTER TABLE users ADD COLUMN updated_at DATETIME",
    ),
)


def apply_column_migrations(sync_connection: Connection) -> list[str]:
    """Add missing columns to existing tables; returns ``table.column`` names added."""

    inspector = inspect(sync_connection)
    tables = set(inspector.get_table_names())
    known: dict[str, set[str]] = {}
    added: list[str] = []
    for migration in COLUMN_MIGRATIONS:
        if migration.table not in tables:
            continue
        columns = known.setdefault(
            migration.table,
            {column["name"] for column in inspector.get_columns(migration.table)},
        )
        if migration.column in columns:
            continue
        sync_connection.execute(text(migration.ddl))
        if migration.backfill:
            sync_connection.execute(text(migration.backfill))
        columns.add(migration.column)
        added.append(f"{migration.table}.{migration.column}")
    return added


class Database:
    """Owns the async engine and hands out sessions to the store."""

    def __init__(self, database_url: str):
        self._engine: AsyncEngine = create_async_engine(database_url)
        self.session_factory: async_sessionmaker[AsyncSession] = async_sessionmaker(
            self._engine, expire_on_commit=False
        )

    async def create_all(self) -> None:
        """Create missing tables, then bring older tables up to date."""

        # Registers the ORM tables on Base.metadata.
        from . import db_models  # noqa: F401

        async with self._engine.begin() as connection:
            await connection.run_sync(Base.metadata.create_all)
            await connection.run_sync(apply_column_migrations)

    async def dispose(self) -> None:
        await self._engine.dispose()
