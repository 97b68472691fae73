"""LangChain vector store backed by a plain SQL table of JSON-encoded embeddings."""

from __future__ import annotations

import asyncio
import logging
import math
from datetime import datetime
from typing import Any, Iterable, Optional, Sequence

from langchain_core.documents import Document
from langchain_core.embeddings import Embeddings
from langchain_core.vectorstores import VectorStore
from sqlalchemy import delete, func, select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from ..storage.db import async_session_factory
from ..storage.models import VectorDocument


logger = logging.getLogger("feedtools.vectorstore")


def cosine_similarity(a: Sequence[float], b: Sequence[float]) -> float:
    if len(a) != len(b):
        raise ValueError("Vectors must have the same length")
    dot = sum(x * y for x, y in zip(a, b))
    denominator = math.sqrt(sum(x * x for x in a)) * math.sqrt(sum(y * y for y in b))
    if denominator == 0:
        return 0.0
    return dot / denominator


def matches_filter(metadata: Optional[dict[str, Any]], filter: Optional[dict[str, Any]]) -> bool:
    if not filter:
        return True
    metadata = metadata or {}
    return all(metadata.get(key) == value for key, value in filter.items())


class SQLVectorStore(VectorStore):
    """Store documents with their embeddings and rank them by cosine similarity.

    The async methods are native. The synchronous LangChain entry points wrap them
    with ``asyncio.run`` and so cannot be called from a running event loop.
    """

    def __init__(
        self,
        embedding: Embeddings,
        *,
        session_factory: Optional[async_sessionmaker[AsyncSession]] = None,
    ) -> None:
        self._embedding = embedding
        self._session_factory = session_factory or async_session_factory

    @property
    def embeddings(self) -> Embeddings:
        return self._embedding

    async def initialize(self) -> None:
        """Create the backing table if it does not exist."""

        async with self._session_factory() as session:
            conn = await session.connection()
            await conn.run_sync(
                lambda sync_conn: VectorDocument.__table__.create(sync_conn, checkfirst=True)
            )
            await session.commit()

    async def aadd_documents(self, documents: list[Document], **kwargs: Any) -> list[str]:
        """Embed and insert documents, returning the ids actually added.

        Ids come from ``ids=`` or, failing that, each document's ``id``, metadata
        ``id`` or ``url``. Ids already present are skipped and not embedded again.
        """

        ids: Optional[Sequence[str]] = kwargs.get("ids")
        if ids is not None and len(ids) != len(documents):
            raise ValueError("ids and documents must have the same length")
        if not documents:
            return []

        doc_ids = list(ids) if ids is not None else [_document_id(doc, idx) for idx, doc in enumerate(documents)]
        added: list[str] = []
        skipped: list[str] = []

        async with self._session_factory() as session:
            existing = await session.execute(
                select(VectorDocument.id).where(VectorDocument.id.in_(doc_ids))
            )
            known = set(existing.scalars())

            pending: list[tuple[str, Document]] = []
            for doc_id, doc in zip(doc_ids, documents):
                if doc_id in known:
                    logger.info("Skipping duplicate document: %s", doc_id)
                    skipped.append(doc_id)
                    continue
                known.add(doc_id)
                pending.append((doc_id, doc))

            if pending:
                vectors = await self._embedding.aembed_documents([doc.page_content for _, doc in pending])
                for (doc_id, doc), vector in zip(pending, vectors):
                    session.add(
                        VectorDocument(
                            id=doc_id,
                            text=doc.page_content,
                            embedding=vector,
                            doc_metadata=dict(doc.metadata),
                        )
                    )
                    added.append(doc_id)
                await session.commit()

        logger.info(
            "Vector store update: %d added, %d skipped (duplicates)", len(added), len(skipped)
        )
        return added

    def add_texts(
        self,
        texts: Iterable[str],
        metadatas: Optional[list[dict]] = None,
        *,
        ids: Optional[list[str]] = None,
        **kwargs: Any,
    ) -> list[str]:
        return asyncio.run(self.aadd_texts(texts, metadatas, ids=ids, **kwargs))

    async def asimilarity_search_with_score(
        self,
        query: str,
        k: int = 4,
        filter: Optional[dict[str, Any]] = None,
        **kwargs: Any,
    ) -> list[tuple[Document, float]]:
        vector = await self._embedding.aembed_query(query)
        return await self.asimilarity_search_with_score_by_vector(vector, k=k, filter=filter)

    async def asimilarity_search(
        self,
        query: str,
        k: int = 4,
        filter: Optional[dict[str, Any]] = None,
        **kwargs: Any,
    ) -> list[Document]:
        results = await self.asimilarity_search_with_score(query, k=k, filter=filter)
        return [doc for doc, _ in results]

    def similarity_search(
        self,
        query: str,
        k: int = 4,
        filter: Optional[dict[str, Any]] = None,
        **kwargs: Any,
    ) -> list[Document]:
        return asyncio.run(self.asimilarity_search(query, k=k, filter=filter))

    async def asimilarity_search_by_vector(
        self,
        embedding: list[float],
        k: int = 4,
        filter: Optional[dict[str, Any]] = None,
        **kwargs: Any,
    ) -> list[Document]:
        results = await self.asimilarity_search_with_score_by_vector(embedding, k=k, filter=filter)
        return [doc for doc, _ in results]

    async def asimilarity_search_with_score_by_vector(
        self,
        embedding: Sequence[float],
        k: int = 4,
        filter: Optional[dict[str, Any]] = None,
    ) -> list[tuple[Document, float]]:
        async with self._session_factory() as session:
            rows = (await session.execute(select(VectorDocument))).scalars().all()

        scored: list[tuple[Document, float]] = []
        for row in rows:
            if not matches_filter(row.doc_metadata, filter):
                continue
            try:
                score = cosine_similarity(embedding, row.embedding)
            except ValueError:
                logger.warning("Skipping document %s: embedding dimension mismatch", row.id)
                continue
            scored.append((_to_document(row), score))

        scored.sort(key=lambda item: item[1], reverse=True)
        return scored[:k]

    async def aget_by_ids(self, ids: Sequence[str], /) -> list[Document]:
        if not ids:
            return []
        async with self._session_factory() as session:
            rows = (
                await session.execute(select(VectorDocument).where(VectorDocument.id.in_(list(ids))))
            ).scalars().all()
        by_id = {row.id: row for row in rows}
        return [_to_document(by_id[doc_id]) for doc_id in ids if doc_id in by_id]

    async def adelete(self, ids: Optional[list[str]] = None, **kwargs: Any) -> Optional[bool]:
        if not ids:
            return False
        async with self._session_factory() as session:
            await session.execute(delete(VectorDocument).where(VectorDocument.id.in_(list(ids))))
            await session.commit()
        return True

    async def count(self) -> int:
        async with self._session_factory() as session:
            result = await session.execute(select(func.count()).select_from(VectorDocument))
            return int(result.scalar_one())

    async def count_since(self, since: datetime) -> int:
        async with self._session_factory() as session:
            result = await session.execute(
                select(func.count())
                .select_from(VectorDocument)
                .where(VectorDocument.created_at >= since)
            )
            return int(result.scalar_one())

    async def first_created_at(self) -> Optional[datetime]:
        async with self._session_factory() as session:
            result = await session.execute(select(func.min(VectorDocument.created_at)))
            return result.scalar_one_or_none()

    @classmethod
    async def afrom_texts(
        cls,
        texts: list[str],
        embedding: Embeddings,
        metadatas: Optional[list[dict]] = None,
        *,
        ids: Optional[list[str]] = None,
        session_factory: Optional[async_sessionmaker[AsyncSession]] = None,
        **kwargs: Any,
    ) -> "SQLVectorStore":
        store = cls(embedding, session_factory=session_factory)
        await store.initialize()
        await store.aadd_texts(texts, metadatas, ids=ids)
        return store

    @classmethod
    def from_texts(
        cls,
        texts: list[str],
        embedding: Embeddings,
        metadatas: Optional[list[dict]] = None,
        *,
        ids: Optional[list[str]] = None,
        **kwargs: Any,
    ) -> "SQLVectorStore":
        return asyncio.run(cls.afrom_texts(texts, embedding, metadatas, ids=ids, **kwargs))


def _document_id(document: Document, index: int) -> str:
    if document.id:
        return document.id
    explicit = document.metadata.get("id")
    if explicit:
        return str(explicit)
    url = document.metadata.get("url")
    if url:
        return str(url)
    return f"doc_{index}"


def _to_document(row: VectorDocument) -> Document:
    metadata = dict(row.doc_metadata or {})
    metadata.setdefault("id", row.id)
    return Document(id=row.id, page_content=row.text, metadata=metadata)
