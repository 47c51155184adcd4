from __future__ import annotations

import asyncio

from sqlalchemy import create_engine, inspect, text

from app.database import Database


def _initialise_legacy_schema(database_path: str) -> None:
    """Create a users table predating the embedded tracked_items column."""

    engine = create_engine(f"sqlite:///{database_path}")
    try:
        with engine.begin() as connection:
            connection.execute(
                text(
                    """
                    CREATE TABLE users (
                        id VARCHAR(64) PRIMARY KEY,
                        email VARCHAR(320) UNIQUE,
                        username VARCHAR(120),
                        created_at DATETIME
                    )
                    """
                )
            )
            connection.execute(
                text(
                    "INSERT INTO users (id, email, username) "
                    "VALUES ('legacy', 'legacy@example.com', 'legacy')"
                )
            )
    finally:
        engine.dispose()


def test_create_all_adds_tracked_items_column(tmp_path) -> None:
    """Schema migrations should add and backfill the tracked_items column."""

    database_path = tmp_path / "legacy.db"
    _initialise_legacy_schema(str(database_path))

    database = Database(f"sqlite+aiosqlite:///{database_path}")
    asyncio.run(database.create_all())
    asyncio.run(database.dispose())

    inspector_engine = create_engine(f"sqlite:///{database_path}")
    try:
        inspector = inspect(inspector_engine)
        columns = {column["name"] for column in inspector.get_columns("users")}
        with inspector_engine.connect() as connection:
            stored = connection.execute(
                text("SELECT tracked_items FROM users WHERE id = 'legacy'")
            ).scalar_one()
    finally:
        inspector_engine.dispose()

    assert {"tracked_items", "updated_at"} <= columns
    assert stored == "[]"


def test_create_all_is_idempotent(tmp_path) -> None:
    database = Database(f"sqlite+aiosqlite:///{tmp_path / 'fresh.db'}")

    async def _run() -> None:
        await database.create_all()
        await database.create_all()
        await database.dispose()

    asyncio.run(_run())
