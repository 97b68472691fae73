"""Async engine for the feed database and schema management commands."""

from __future__ import annotations

import argparse
import asyncio
import logging
from pathlib import Path
from typing import Optional

from sqlalchemy.engine import make_url
from sqlalchemy.ext.asyncio import AsyncEngine, async_sessionmaker, create_async_engine

from ..config import get_settings
from .models import Base


logger = logging.getLogger("feedtools.db")


def ensure_sqlite_directory(url: str) -> None:
    """Create the parent directory of a file-backed SQLite database."""

    parsed = make_url(url)
    if parsed.get_backend_name() != "sqlite":
        return
    database = parsed.database
    if not database or database == ":memory:" or database.startswith("file:"):
        return
    Path(database).expanduser().parent.mkdir(parents=True, exist_ok=True)


def create_engine(url: Optional[str] = None) -> AsyncEngine:
    """Engine for ``url``, defaulting to the configured database."""

    url = url or get_settings().database_url
    ensure_sqlite_directory(url)
    return create_async_engine(url, echo=False, pool_pre_ping=True)


engine: AsyncEngine = create_engine()
async_session_factory = async_sessionmaker(engine, expire_on_commit=False)


async def init_db(db_engine: Optional[AsyncEngine] = None) -> None:
    """Create the feed, article and vector store tables that are missing."""

    db_engine = db_engine or engine
    logger.debug("Creating tables on %s", db_engine.url.render_as_string(hide_password=True))
    async with db_engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)


async def drop_db(db_engine: Optional[AsyncEngine] = None) -> None:
    async with (db_engine or engine).begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)


async def reset_db(db_engine: Optional[AsyncEngine] = None) -> None:
    """Drop every table, feeds included, and recreate the empty schema."""

    await drop_db(db_engine)
    await init_db(db_engine)


def _parse_args() -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="feedtools database schema")
    group = parser.add_mutually_exclusive_group(required=True)
    group.add_argument("--init", action="store_true", help="Create missing tables")
    group.add_argument("--drop", action="store_true", help="Drop all tables")
    group.add_argument("--reset", action="store_true", help="Drop and recreate all tables")
    return parser.parse_args()


def main() -> None:
    args = _parse_args()
    if args.drop:
        asyncio.run(drop_db())
        print("✅ Tables dropped")
        return
    asyncio.run(init_db() if args.init else reset_db())
    print(f"✅ Database ready: {get_settings().database_url}")


if __name__ == "__main__":
    main()
