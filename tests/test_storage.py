"""Tests for storage helpers."""

from __future__ import annotations

import pytest
import pytest_asyncio
from sqlalchemy import inspect

from src.feedtools.storage import crud
from src.feedtools.storage.db import create_engine, ensure_sqlite_directory, init_db, reset_db


@pytest_asyncio.fixture
async def seeded(test_db_sessionmaker):
    async with test_db_sessionmaker() as session:
        await crud.add_feed(session, name="Hacker Digest", url="https://hd.example.com/rss")
        await crud.add_feed(session, name="AI Wire", url="https://aiwire.example.com/rss", category="AI")
        await crud.add_feed(session, name="Archive", url="https://old.example.com/rss", is_active=False)
        await session.commit()
    return test_db_sessionmaker


@pytest.mark.asyncio
async def test_list_feeds_orders_by_category_then_name(seeded):
    async with seeded() as session:
        feeds = await crud.list_feeds(session)
        active = await crud.list_feeds(session, active_only=True)
        tech = await crud.list_feeds(session, category="Tech")

    assert [feed.name for feed in feeds] == ["AI Wire", "Archive", "Hacker Digest"]
    assert [feed.name for feed in active] == ["AI Wire", "Hacker Digest"]
    assert [feed.name for feed in tech] == ["Archive", "Hacker Digest"]


@pytest.mark.asyncio
async def test_active_feeds_by_names_ignores_inactive(seeded):
    async with seeded() as session:
        feeds = await crud.get_active_feeds_by_names(session, ["Archive", "AI Wire", "Unknown"])
        none = await crud.get_active_feeds_by_names(session, [])
    assert [feed.name for feed in feeds] == ["AI Wire"]
    assert none == []


@pytest.mark.asyncio
async def test_init_db_is_idempotent(test_db_engine):
    await init_db(test_db_engine)
    await init_db(test_db_engine)
    async with test_db_engine.connect() as conn:
        tables = await conn.run_sync(lambda sync_conn: inspect(sync_conn).get_table_names())
    assert {"rss_feeds", "articles", "vector_store"} <= set(tables)


@pytest.mark.asyncio
async def test_reset_db_clears_feeds(seeded, test_db_engine):
    await reset_db(test_db_engine)
    async with seeded() as session:
        assert await crud.list_feeds(session) == []


def test_ensure_sqlite_directory_creates_parent(tmp_path):
    ensure_sqlite_directory(f"sqlite+aiosqlite:///{tmp_path}/data/feeds.db")
    ensure_sqlite_directory("sqlite+aiosqlite:///:memory:")
    ensure_sqlite_directory("postgresql+asyncpg://user@localhost/feeds")
    assert (tmp_path / "data").is_dir()


@pytest.mark.asyncio
async def test_create_engine_for_new_sqlite_file(tmp_path):
    engine = create_engine(f"sqlite+aiosqlite:///{tmp_path}/nested/feeds.db")
    await init_db(engine)
    await engine.dispose()
    assert (tmp_path / "nested" / "feeds.db").exists()
