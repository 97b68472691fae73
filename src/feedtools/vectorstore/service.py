"""High level vector store operations used by the CLI."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Any, Optional

from langchain_core.documents import Document
from langchain_core.embeddings import Embeddings
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from ..storage import crud
from ..storage.db import async_session_factory
from ..storage.models import Article
from .embeddings import OllamaEmbedder
from .store import SQLVectorStore


logger = logging.getLogger("feedtools.vectorstore")


@dataclass(slots=True)
class VectorStoreStats:
    total_documents: int
    recent_documents: int
    average_documents_per_day: float


class VectorStoreService:
    """Sync stored articles into the vector store and query it."""

    def __init__(
        self,
        embedder: Optional[Embeddings] = None,
        *,
        session_factory: Optional[async_sessionmaker[AsyncSession]] = None,
    ) -> None:
        self._session_factory = session_factory or async_session_factory
        self.store = SQLVectorStore(embedder or OllamaEmbedder(), session_factory=self._session_factory)

    async def initialize(self) -> None:
        logger.info("Initializing vector store service")
        await self.store.initialize()

    async def add_articles(self, limit: int = 100) -> int:
        """Embed up to ``limit`` articles not yet in the store. Returns how many were added."""

        async with self._session_factory() as session:
            articles = await crud.list_articles_without_embedding(session, limit=limit)
        if not articles:
            logger.info("No new articles to add to the vector store")
            return 0

        logger.info("Adding %d articles to vector store", len(articles))
        ids = [article_document_id(article) for article in articles]
        added = await self.store.aadd_documents(
            [article_to_document(article) for article in articles], ids=ids
        )

        # skipped ids are already in the store, so they are linked too
        async with self._session_factory() as session:
            await crud.set_embedding_ids(
                session, {article.id: doc_id for article, doc_id in zip(articles, ids)}
            )
            await session.commit()
        return len(added)

    async def search(
        self,
        query: str,
        limit: int = 5,
        filter: Optional[dict[str, Any]] = None,
    ) -> list[tuple[Document, float]]:
        logger.debug("Searching vector store for %r (k=%d)", query, limit)
        return await self.store.asimilarity_search_with_score(query, k=limit, filter=filter)

    async def stats(self, now: Optional[datetime] = None) -> VectorStoreStats:
        now = now or datetime.now(timezone.utc)
        total = await self.store.count()
        recent = await self.store.count_since(now - timedelta(hours=24))

        first = await self.store.first_created_at()
        average = 0.0
        if first is not None and total:
            if first.tzinfo is None:
                first = first.replace(tzinfo=timezone.utc)
            days = max((now - first).total_seconds() / 86400, 1.0)
            average = round(total / days, 1)

        return VectorStoreStats(
            total_documents=total,
            recent_documents=recent,
            average_documents_per_day=average,
        )


def article_document_id(article: Article) -> str:
    return f"article_{article.id}"


def article_to_document(article: Article) -> Document:
    return Document(
        page_content=f"{article.title}\n\n{article.content}",
        metadata={
            "article_id": article.id,
            "source": article.source,
            "url": article.url,
            "title": article.title,
            "category": article.category,
            "published_at": article.published_at.isoformat() if article.published_at else None,
        },
    )
