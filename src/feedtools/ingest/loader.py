"""Load RSS feeds into documents and, optionally, the articles table."""

from __future__ import annotations

import asyncio
import logging
from collections import Counter
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import AsyncIterator, Iterable, Iterator, Optional, Sequence

import httpx
from langchain_core.document_loaders import BaseLoader
from langchain_core.documents import Document
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from ..config import get_settings
from ..storage import crud
from ..storage.db import async_session_factory
from ..storage.models import RSSFeed
from .rss import MIN_CONTENT_CHARS, FeedEntry, RSSClient


logger = logging.getLogger("feedtools.loader")

_EPOCH = datetime.min.replace(tzinfo=timezone.utc)


@dataclass(slots=True)
class FeedConfig:
    """How to load one feed."""

    name: str
    url: str
    category: str = "Tech"
    max_items: Optional[int] = None
    timeout: Optional[float] = None
    stop_at_duplicate: bool = True

    @classmethod
    def from_record(cls, feed: RSSFeed) -> "FeedConfig":
        return cls(name=feed.name, url=feed.url, category=feed.category)


class RSSLoader(BaseLoader):
    """Turn one feed into documents, newest first, skipping already stored articles.

    Saving happens once the feed has been fully iterated, so ``aload()`` is the
    usual entry point.
    """

    def __init__(
        self,
        config: FeedConfig,
        *,
        save: bool = False,
        session_factory: Optional[async_sessionmaker[AsyncSession]] = None,
        client: Optional[httpx.AsyncClient] = None,
    ) -> None:
        self.config = config
        self.save = save
        self._session_factory = session_factory or async_session_factory
        self._rss = RSSClient(config.url, name=config.name, timeout=config.timeout, client=client)

    async def alazy_load(self) -> AsyncIterator[Document]:
        logger.info("Loading RSS feed: %s (%s)", self.config.name, self.config.url)
        entries = sort_newest_first(await self._rss.fetch_entries())
        if self.config.max_items:
            entries = entries[: self.config.max_items]

        fresh: list[FeedEntry] = []
        duplicates = 0

        async with self._session_factory() as session:
            for entry in entries:
                if len(entry.content) < MIN_CONTENT_CHARS:
                    continue
                exists = await crud.article_exists(
                    session,
                    url=entry.link,
                    guid=entry.guid,
                    title=entry.title,
                    source=self.config.name,
                )
                if exists:
                    duplicates += 1
                    logger.debug("Found duplicate: %s", entry.title)
                    if self.config.stop_at_duplicate:
                        logger.info(
                            "Stopping at first duplicate after %d new article(s)", len(fresh)
                        )
                        break
                    continue
                fresh.append(entry)
                yield self.to_document(entry)

            if self.save:
                await self._save(session, fresh)

        logger.info(
            "Loaded %d new documents from %s (%d duplicates skipped)",
            len(fresh),
            self.config.name,
            duplicates,
        )

    def lazy_load(self) -> Iterator[Document]:
        yield from asyncio.run(self.aload())

    async def _save(self, session: AsyncSession, entries: Sequence[FeedEntry]) -> None:
        created = 0
        for entry in entries:
            _, was_created = await crud.get_or_create_article(
                session,
                title=entry.title,
                content=entry.content,
                url=entry.link,
                source=self.config.name,
                published_at=entry.published,
                category=self.config.category,
                tags=", ".join(entry.tags) or None,
                summary=entry.summary,
                guid=entry.guid,
            )
            created += int(was_created)
        await crud.touch_feed(session, self.config.name)
        await session.commit()
        logger.info("Saved %d articles from %s", created, self.config.name)

    def to_document(self, entry: FeedEntry) -> Document:
        return Document(
            page_content=f"{entry.title}\n\n{entry.content}",
            metadata={
                "source": self.config.name,
                "url": entry.link,
                "title": entry.title,
                "category": self.config.category,
                "author": entry.author,
                "published_at": entry.published.isoformat() if entry.published else None,
                "tags": ", ".join(entry.tags),
                "summary": entry.summary,
                "guid": entry.guid,
                "loader": "rss",
            },
        )


def sort_newest_first(entries: Iterable[FeedEntry]) -> list[FeedEntry]:
    """Undated entries sort last."""

    return sorted(entries, key=lambda entry: entry.published or _EPOCH, reverse=True)


async def load_multiple(
    configs: Sequence[FeedConfig],
    *,
    save: bool = False,
    delay: Optional[float] = None,
    session_factory: Optional[async_sessionmaker[AsyncSession]] = None,
    client: Optional[httpx.AsyncClient] = None,
) -> list[Document]:
    """Load feeds one after another, sleeping ``delay`` seconds between them.

    A failing feed is logged and skipped.
    """

    if delay is None:
        delay = get_settings().feed_load_delay_seconds
    logger.info("Loading %d RSS feeds", len(configs))

    documents: list[Document] = []
    for index, config in enumerate(configs):
        loader = RSSLoader(config, save=save, session_factory=session_factory, client=client)
        try:
            documents.extend(await loader.aload())
        except Exception as exc:
            logger.error("Error loading feed %s: %s", config.name, exc, exc_info=True)
        if delay and index < len(configs) - 1:
            await asyncio.sleep(delay)

    logger.info("Total documents loaded: %d", len(documents))
    return documents


async def load_from_database(
    category: Optional[str] = None,
    *,
    save: bool = False,
    delay: Optional[float] = None,
    session_factory: Optional[async_sessionmaker[AsyncSession]] = None,
    client: Optional[httpx.AsyncClient] = None,
) -> list[Document]:
    """Load every active feed, optionally restricted to one category."""

    factory = session_factory or async_session_factory
    async with factory() as session:
        feeds = await crud.get_active_feeds(session, category=category)
    configs = [FeedConfig.from_record(feed) for feed in feeds]
    return await load_multiple(
        configs, save=save, delay=delay, session_factory=factory, client=client
    )


def group_by_source(documents: Iterable[Document]) -> dict[str, int]:
    counts = Counter(str(doc.metadata.get("source")) for doc in documents)
    return dict(counts)
