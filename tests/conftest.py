"""Shared pytest configuration and fixtures.

Fakes stand in for the three external collaborators (embedding provider,
vector store, chat model) so no test needs a network or a model download.
"""

from __future__ import annotations

import hashlib
import math
from collections.abc import AsyncIterator
from typing import Any

import pytest
from langchain_core.embeddings import Embeddings
from langchain_core.messages import AIMessageChunk, BaseMessage

from docchat.conversation import ConversationStore
from docchat.ingestion.cache import EmbeddingCache
from docchat.ingestion.embedder import Embedder
from docchat.jobs import JobRegistry
from docchat.retrieval.base import VectorStoreBase
from docchat.retrieval.models import CollectionInfo, MetadataFilter, SearchHit, VectorPoint

DIM = 8


def pytest_configure(config: pytest.Config) -> None:
    """Register custom markers."""
    config.addinivalue_line("markers", "integration: marks tests requiring external services")


# ── Fakes ───────────────────────────────────────────────────────────────


class FakeEmbeddings(Embeddings):
    """Deterministic embeddings that record every provider call."""

    def __init__(self, dim: int = DIM, fixed: dict[str, list[float]] | None = None) -> None:
        self.dim = dim
        self.fixed = fixed or {}
        self.calls: list[list[str]] = []
        self.fail_with: Exception | None = None
        self.drop_last = False

    def _vector(self, text: str) -> list[float]:
        if text in self.fixed:
            return list(self.fixed[text])
        digest = hashlib.sha256(text.encode()).digest()
        raw = [b / 255.0 + 0.01 for b in digest[: self.dim]]
        norm = math.sqrt(sum(x * x for x in raw))
        return [x / norm for x in raw]

    def embed_documents(self, texts: list[str]) -> list[list[float]]:
        self.calls.append(list(texts))
        if self.fail_with is not None:
            raise self.fail_with
        vectors = [self._vector(t) for t in texts]
        return vectors[:-1] if self.drop_last else vectors

    def embed_query(self, text: str) -> list[float]:
        return self.embed_documents([text])[0]


def _cosine(a: list[float], b: list[float]) -> float:
    dot = sum(x * y for x, y in zip(a, b))
    na = math.sqrt(sum(x * x for x in a))
    nb = math.sqrt(sum(y * y for y in b))
    return dot / (na * nb) if na and nb else 0.0


class FakeVectorStore(VectorStoreBase):
    """In-memory brute-force cosine store."""

    def __init__(self, dimension: int = DIM) -> None:
        super().__init__("test-collection", dimension)
        self.points: dict[str, VectorPoint] = {}
        self.upsert_calls: list[tuple[int, bool]] = []
        self.fail_search = False

    def ensure_collection(self) -> None:
        return None

    def _upsert(self, points: list[VectorPoint], *, wait: bool) -> None:
        self.upsert_calls.append((len(points), wait))
        for p in points:
            self.points[p.id] = p

    def search(
        self,
        vector: list[float],
        *,
        k: int = 5,
        score_threshold: float | None = None,
    ) -> list[SearchHit]:
        if self.fail_search:
            raise RuntimeError("search backend down")
        scored = [
            SearchHit(id=p.id, score=_cosine(vector, p.vector), payload=p.payload)
            for p in self.points.values()
        ]
        if score_threshold is not None:
            scored = [h for h in scored if h.score >= score_threshold]
        return sorted(scored, key=lambda h: h.score, reverse=True)[:k]

    def count(self, filters: list[MetadataFilter] | None = None) -> int:
        if not filters:
            return len(self.points)
        return sum(
            1
            for p in self.points.values()
            if all(getattr(p.payload, f.field) == f.value for f in filters)
        )

    def collection_info(self) -> CollectionInfo | None:
        return CollectionInfo(
            name=self.collection_name,
            dimension=self.dimension,
            metric=self.metric,
            point_count=len(self.points),
        )

    def health_check(self) -> bool:
        return True


class FakeChatModel:
    """Streams canned tokens; optionally fails after ``fail_after`` tokens."""

    def __init__(self, tokens: list[str] | None = None, fail_after: int | None = None) -> None:
        self.tokens = tokens if tokens is not None else ["Kubeflow ", "runs ", "pipelines [1]."]
        self.fail_after = fail_after
        self.received: list[list[BaseMessage]] = []

    async def astream(self, messages: list[BaseMessage], **kwargs: Any) -> AsyncIterator[AIMessageChunk]:
        self.received.append(list(messages))
        for i, token in enumerate(self.tokens):
            if self.fail_after is not None and i >= self.fail_after:
                raise RuntimeError("upstream connection reset")
            yield AIMessageChunk(content=token)


# ── Fixtures ────────────────────────────────────────────────────────────


@pytest.fixture()
def fake_embeddings() -> FakeEmbeddings:
    return FakeEmbeddings()


@pytest.fixture()
def cache() -> EmbeddingCache:
    return EmbeddingCache(max_size=1000, ttl_seconds=3600)


@pytest.fixture()
def embedder(fake_embeddings: FakeEmbeddings, cache: EmbeddingCache) -> Embedder:
    return Embedder(provider=fake_embeddings, cache=cache)


@pytest.fixture()
def fake_store() -> FakeVectorStore:
    return FakeVectorStore()


@pytest.fixture()
def jobs() -> JobRegistry:
    return JobRegistry()


@pytest.fixture()
def history() -> ConversationStore:
    return ConversationStore(max_length=50)


@pytest.fixture()
def fake_llm() -> FakeChatModel:
    return FakeChatModel()
