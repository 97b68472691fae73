"""CRUD helpers for database operations."""

from collections.abc import Sequence
from datetime import datetime
from typing import Optional

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from .models import Article, RSSFeed, utcnow


async def get_feed_by_name(session: AsyncSession, name: str) -> Optional[RSSFeed]:
    result = await session.execute(select(RSSFeed).where(RSSFeed.name == name))
    return result.scalar_one_or_none()


async def list_feeds(
    session: AsyncSession,
    *,
    category: Optional[str] = None,
    active_only: bool = False,
) -> list[RSSFeed]:
    """Return feeds ordered by category then name."""

    stmt = select(RSSFeed).order_by(RSSFeed.category, RSSFeed.name)
    if category:
        stmt = stmt.where(RSSFeed.category == category)
    if active_only:
        stmt = stmt.where(RSSFeed.is_active.is_(True))
    result = await session.execute(stmt)
    return list(result.scalars())


async def list_all_feeds_by_name(session: AsyncSession) -> list[RSSFeed]:
    result = await session.execute(select(RSSFeed).order_by(RSSFeed.name))
    return list(result.scalars())


async def get_active_feeds(session: AsyncSession, *, category: Optional[str] = None) -> list[RSSFeed]:
    stmt = select(RSSFeed).where(RSSFeed.is_active.is_(True)).order_by(RSSFeed.id)
    if category:
        stmt = stmt.where(RSSFeed.category == category)
    result = await session.execute(stmt)
    return list(result.scalars())


async def get_active_feeds_by_names(session: AsyncSession, names: Sequence[str]) -> list[RSSFeed]:
    if not names:
        return []
    stmt = (
        select(RSSFeed)
        .where(RSSFeed.name.in_(list(names)), RSSFeed.is_active.is_(True))
        .order_by(RSSFeed.id)
    )
    result = await session.execute(stmt)
    return list(result.scalars())


async def add_feed(
    session: AsyncSession,
    *,
    name: str,
    url: str,
    category: str = "Tech",
    is_active: bool = True,
) -> RSSFeed:
    feed = RSSFeed(name=name, url=url, category=category, is_active=is_active)
    session.add(feed)
    await session.flush()
    return feed


async def touch_feed(session: AsyncSession, name: str, when: Optional[datetime] = None) -> None:
    """Record that the named feed was fetched."""

    await session.execute(
        update(RSSFeed).where(RSSFeed.name == name).values(last_fetched=when or utcnow())
    )


async def get_article_by_url(session: AsyncSession, url: str) -> Optional[Article]:
    result = await session.execute(select(Article).where(Article.url == url))
    return result.scalar_one_or_none()


async def article_exists(
    session: AsyncSession,
    *,
    url: str,
    title: str,
    source: str,
    guid: Optional[str] = None,
) -> bool:
    """Match by URL first, then GUID, then title within the same source."""

    if await get_article_by_url(session, url):
        return True
    if guid:
        result = await session.execute(select(Article.id).where(Article.guid == guid).limit(1))
        if result.first():
            return True
    result = await session.execute(
        select(Article.id).where(Article.title == title, Article.source == source).limit(1)
    )
    return result.first() is not None


async def get_or_create_article(
    session: AsyncSession,
    *,
    title: str,
    content: str,
    url: str,
    source: str,
    published_at: Optional[datetime] = None,
    category: Optional[str] = None,
    tags: Optional[str] = None,
    summary: Optional[str] = None,
    guid: Optional[str] = None,
) -> tuple[Article, bool]:
    """Insert an article unless its URL is already stored. Returns ``(article, created)``."""

    article = await get_article_by_url(session, url)
    if article:
        return article, False

    article = Article(
        title=title,
        content=content,
        url=url,
        source=source,
        published_at=published_at,
        category=category,
        tags=tags,
        summary=summary,
        guid=guid,
    )
    session.add(article)
    await session.flush()
    return article, True


async def list_articles_without_embedding(session: AsyncSession, limit: int = 100) -> list[Article]:
    stmt = (
        select(Article)
        .where(Article.embedding_id.is_(None))
        .order_by(Article.created_at.desc())
        .limit(limit)
    )
    result = await session.execute(stmt)
    return list(result.scalars())


async def set_embedding_ids(session: AsyncSession, embedding_ids: dict[int, str]) -> None:
    """Link articles to their vector store documents."""

    for article_id, embedding_id in embedding_ids.items():
        await session.execute(
            update(Article).where(Article.id == article_id).values(embedding_id=embedding_id)
        )
