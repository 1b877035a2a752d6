"""
Retrieval — vector storage and similarity search.

This module wraps the vector store behind a clean interface so that the
ingestion and query pipelines never need to know which DB is backing them.

Public surface
--------------
- :class:`VectorStoreBase` — abstract backend (subclass for Qdrant, etc.).
- :class:`ChromaVectorStore` — default Chroma backend.
- :class:`VectorPoint`, :class:`PointPayload`, :class:`SearchHit`,
  :class:`RetrievedContext`, :class:`CollectionInfo`,
  :class:`MetadataFilter` — data models.
"""

from docchat.retrieval.base import VectorStoreBase
from docchat.retrieval.models import (
    CollectionInfo,
    MetadataFilter,
    PointPayload,
    RetrievedContext,
    SearchHit,
    VectorPoint,
)

__all__ = [
    "ChromaVectorStore",
    "CollectionInfo",
    "MetadataFilter",
    "PointPayload",
    "RetrievedContext",
    "SearchHit",
    "VectorPoint",
    "VectorStoreBase",
]


def __getattr__(name: str):  # noqa: ANN001
    """Lazy-import ChromaVectorStore to avoid pulling in chromadb at import time."""
    if name == "ChromaVectorStore":
        from docchat.retrieval.chroma_store import ChromaVectorStore

        return ChromaVectorStore
    raise AttributeError(f"module {__name__!r} has no attribute {name!r}")
