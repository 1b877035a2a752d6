"""Cache-aware batch embedding.

The embedder accepts any LangChain :class:`~langchain_core.embeddings.Embeddings`
implementation, so pipeline code never needs to know whether vectors come
from a local sentence-transformer or a remote API.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any

from docchat.config import Settings, settings
from docchat.exceptions import EmbeddingProviderError
from docchat.ingestion.cache import EmbeddingCache

if TYPE_CHECKING:
    from langchain_core.embeddings import Embeddings

logger = logging.getLogger(__name__)


def get_embedding_provider(config: Settings = settings) -> Embeddings:
    """Return the embedding model selected by ``config.embedding_method``."""
    method = config.embedding_method.lower()
    if method == "openai":
        from langchain_openai import OpenAIEmbeddings

        return OpenAIEmbeddings(
            model=config.openai_embedding_model,
            dimensions=config.openai_embedding_dimensions,
            api_key=config.openai_api_key,
            timeout=config.embedding_timeout,
            max_retries=config.llm_max_retries,
        )
    if method == "huggingface":
        from langchain_huggingface import HuggingFaceEmbeddings

        return HuggingFaceEmbeddings(
            model_name=config.embedding_model,
            encode_kwargs={"normalize_embeddings": True},
        )
    raise ValueError(f"Unsupported embedding method: {config.embedding_method!r}")


class Embedder:
    """Embed texts, computing only cache misses.

    Parameters
    ----------
    provider:
        LangChain embeddings model.  Defaults to
        :func:`get_embedding_provider` with the global settings.
    cache:
        Shared :class:`EmbeddingCache`.  A private cache is created when
        omitted.
    """

    def __init__(
        self,
        provider: Embeddings | None = None,
        cache: EmbeddingCache | None = None,
    ) -> None:
        self._provider = provider if provider is not None else get_embedding_provider()
        self.cache = cache if cache is not None else EmbeddingCache()

    async def embed_batch(self, texts: list[str]) -> list[list[float]]:
        """Return one vector per input text, in input order.

        All cache misses go to the provider in a single call.  A provider
        failure fails the whole batch.

        Raises
        ------
        EmbeddingProviderError
            If the provider raises or returns the wrong number of vectors.
        """
        results: list[list[float] | None] = [None] * len(texts)
        missing_texts: list[str] = []
        missing_positions: list[int] = []

        for i, text in enumerate(texts):
            cached = self.cache.get(text)
            if cached is not None:
                results[i] = cached
            else:
                missing_texts.append(text)
                missing_positions.append(i)

        if missing_texts:
            logger.debug(
                "Embedding %d uncached of %d texts", len(missing_texts), len(texts)
            )
            try:
                vectors = await self._provider.aembed_documents(missing_texts)
            except Exception as exc:
                raise EmbeddingProviderError(f"Failed to generate embeddings: {exc}") from exc

            if len(vectors) != len(missing_texts):
                raise EmbeddingProviderError(
                    "Embedding provider returned a mismatched number of vectors",
                    {"expected": len(missing_texts), "received": len(vectors)},
                )

            for pos, text, vector in zip(missing_positions, missing_texts, vectors):
                vector = list(vector)
                self.cache.put(text, vector)
                results[pos] = vector

        return results  # type: ignore[return-value]

    async def embed(self, text: str) -> list[float]:
        """Embed a single text."""
        return (await self.embed_batch([text]))[0]

    def info(self) -> dict[str, Any]:
        """Describe the active embedding configuration."""
        if settings.embedding_method.lower() == "openai":
            model = settings.openai_embedding_model
        else:
            model = settings.embedding_model
        return {
            "method": settings.embedding_method.upper(),
            "model": model,
            "dimensions": settings.vector_size,
            "provider": type(self._provider).__name__,
        }
