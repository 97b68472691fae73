"""Pytest fixtures for feedtools tests."""

from __future__ import annotations

from typing import Callable, Iterable

import httpx
import pytest
import pytest_asyncio
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from src.feedtools.storage.models import Base


LONG_TEXT = (
    "This article body is comfortably longer than fifty characters so it is kept "
    "by the loader when feeds are processed."
)


@pytest_asyncio.fixture(scope="function")
async def test_db_engine():
    """Create an in-memory SQLite database for testing."""
    engine = create_async_engine(
        "sqlite+aiosqlite:///:memory:",
        echo=False,
        poolclass=StaticPool,
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest_asyncio.fixture(scope="function")
async def test_db_sessionmaker(test_db_engine):
    """Provide a session factory bound to the test engine."""
    return async_sessionmaker(test_db_engine, class_=AsyncSession, expire_on_commit=False)


@pytest.fixture
def rss_document() -> Callable[[Iterable[dict]], str]:
    """Build an RSS 2.0 document from item dicts (title, link, description, pubDate, guid)."""

    def build(items: Iterable[dict], title: str = "Example Feed") -> str:
        parts = []
        for item in items:
            fields = "".join(
                f"<{key}>{value}</{key}>" for key, value in item.items() if value is not None
            )
            parts.append(f"<item>{fields}</item>")
        return (
            '<?xml version="1.0" encoding="UTF-8"?>'
            '<rss version="2.0"><channel>'
            f"<title>{title}</title><link>https://example.com</link>"
            "<description>Example</description>"
            f"{''.join(parts)}"
            "</channel></rss>"
        )

    return build


@pytest.fixture
def mock_http() -> Callable[[dict], httpx.AsyncClient]:
    """Return a factory for AsyncClients that serve canned responses keyed by URL."""

    def build(routes: dict) -> httpx.AsyncClient:
        def handler(request: httpx.Request) -> httpx.Response:
            route = routes.get(str(request.url))
            if route is None:
                return httpx.Response(404, text="not found")
            if isinstance(route, httpx.Response):
                return route
            return httpx.Response(200, text=route, headers={"Content-Type": "application/rss+xml"})

        return httpx.AsyncClient(transport=httpx.MockTransport(handler))

    return build


@pytest.fixture
def long_text() -> str:
    return LONG_TEXT
