"""Process-wide service wiring for the HTTP layer.

Everything shared between requests (embedding cache, job registry,
conversation logs, vector-store client) is built once here.  Routes
receive it through ``Depends(get_services)`` so tests can substitute
fakes with ``app.dependency_overrides``.
"""

from __future__ import annotations

from dataclasses import dataclass
from functools import lru_cache

from docchat.conversation import ConversationStore
from docchat.ingestion.cache import EmbeddingCache
from docchat.ingestion.embedder import Embedder
from docchat.ingestion.pipeline import IngestionPipeline
from docchat.jobs import JobRegistry
from docchat.query import QueryPipeline
from docchat.retrieval.base import VectorStoreBase


@dataclass
class Services:
    cache: EmbeddingCache
    embedder: Embedder
    store: VectorStoreBase
    jobs: JobRegistry
    history: ConversationStore
    ingestion: IngestionPipeline
    query: QueryPipeline


def build_services(
    embedder: Embedder,
    store: VectorStoreBase,
    llm: object,
    *,
    jobs: JobRegistry | None = None,
    history: ConversationStore | None = None,
) -> Services:
    """Wire pipelines around the given collaborators."""
    jobs = jobs or JobRegistry()
    history = history or ConversationStore()
    return Services(
        cache=embedder.cache,
        embedder=embedder,
        store=store,
        jobs=jobs,
        history=history,
        ingestion=IngestionPipeline(embedder, store, jobs),
        query=QueryPipeline(embedder, store, history, llm),
    )


@lru_cache
def get_services() -> Services:
    """Build the production services from global settings (once)."""
    from docchat.generation.llm import get_llm
    from docchat.retrieval.chroma_store import ChromaVectorStore

    return build_services(
        embedder=Embedder(cache=EmbeddingCache()),
        store=ChromaVectorStore(),
        llm=get_llm(streaming=True),
    )
