"""Text embeddings served by a local Ollama instance."""

from __future__ import annotations

import contextlib
import logging
from typing import Iterator, Optional

import httpx
import ollama
from langchain_core.embeddings import Embeddings
from langchain_ollama import OllamaEmbeddings

from ..config import get_settings
from ..errors import EmbeddingError


logger = logging.getLogger("feedtools.embeddings")


class OllamaEmbedder(Embeddings):
    """Batch and truncate inputs before handing them to ``OllamaEmbeddings``.

    Backend failures surface as :class:`EmbeddingError`. ``embeddings`` may be any
    LangChain ``Embeddings`` and defaults to the configured Ollama model.
    """

    def __init__(
        self,
        model: Optional[str] = None,
        base_url: Optional[str] = None,
        *,
        batch_size: Optional[int] = None,
        max_chars: Optional[int] = None,
        embeddings: Optional[Embeddings] = None,
    ) -> None:
        settings = get_settings()
        self.model = model or settings.ollama_embedding_model
        self.base_url = base_url or settings.ollama_base_url
        self.batch_size = batch_size or settings.embedding_batch_size
        self.max_chars = max_chars or settings.embedding_max_chars
        self._embeddings = embeddings or OllamaEmbeddings(model=self.model, base_url=self.base_url)

    def embed_documents(self, texts: list[str]) -> list[list[float]]:
        vectors: list[list[float]] = []
        for batch in self._batches(texts):
            with self._backend_errors():
                vectors.extend(self._checked(batch, self._embeddings.embed_documents(batch)))
        return vectors

    def embed_query(self, text: str) -> list[float]:
        return self.embed_documents([text])[0]

    async def aembed_documents(self, texts: list[str]) -> list[list[float]]:
        vectors: list[list[float]] = []
        for batch in self._batches(texts):
            with self._backend_errors():
                vectors.extend(self._checked(batch, await self._embeddings.aembed_documents(batch)))
        return vectors

    async def aembed_query(self, text: str) -> list[float]:
        vectors = await self.aembed_documents([text])
        return vectors[0]

    def _batches(self, texts: list[str]) -> Iterator[list[str]]:
        for start in range(0, len(texts), self.batch_size):
            yield [text[: self.max_chars] for text in texts[start : start + self.batch_size]]

    def _checked(self, batch: list[str], vectors: list[list[float]]) -> list[list[float]]:
        if len(vectors) != len(batch):
            raise EmbeddingError(
                f"Expected {len(batch)} embeddings from {self.model}, got {len(vectors)}"
            )
        return [list(vector) for vector in vectors]

    @contextlib.contextmanager
    def _backend_errors(self) -> Iterator[None]:
        try:
            yield
        except (ollama.ResponseError, httpx.HTTPError, ConnectionError) as exc:
            logger.error(
                "Embedding request to %s failed; is `ollama serve` running?", self.base_url
            )
            raise EmbeddingError(f"Ollama embedding failed: {exc}") from exc
