"""Chroma implementation of the vector-store abstraction."""

from __future__ import annotations

import json
import logging
from datetime import datetime, timezone
from typing import Any

import chromadb

from docchat.config import settings
from docchat.exceptions import VectorStoreError
from docchat.retrieval.base import VectorStoreBase
from docchat.retrieval.models import (
    CollectionInfo,
    MetadataFilter,
    PointPayload,
    SearchHit,
    VectorPoint,
)

logger = logging.getLogger(__name__)

_OP_MAP = {
    "eq": "$eq",
    "ne": "$ne",
    "gt": "$gt",
    "gte": "$gte",
    "lt": "$lt",
    "lte": "$lte",
    "in": "$in",
    "nin": "$nin",
}


def _build_chroma_where(filters: list[MetadataFilter]) -> dict[str, Any] | None:
    """Convert a list of :class:`MetadataFilter` to Chroma ``where`` syntax."""
    if not filters:
        return None

    clauses: list[dict[str, Any]] = []
    for f in filters:
        chroma_op = _OP_MAP.get(f.operator)
        if chroma_op is None:
            raise ValueError(f"Unsupported filter operator: {f.operator!r}")
        clauses.append({f.field: {chroma_op: f.value}})

    if len(clauses) == 1:
        return clauses[0]
    return {"$and": clauses}


def _payload_to_metadata(payload: PointPayload) -> dict[str, Any]:
    """Flatten a payload into Chroma's scalar-only metadata.

    The free-form ``metadata`` dict is stored as a JSON string.
    """
    return {
        "source": payload.source,
        "chunk_index": payload.chunk_index,
        "total_chunks": payload.total_chunks,
        "uploaded_at": payload.uploaded_at.isoformat(),
        "metadata_json": json.dumps(payload.metadata, default=str),
    }


def _metadata_to_payload(text: str | None, meta: dict[str, Any] | None) -> PointPayload:
    meta = meta or {}
    uploaded_at = meta.get("uploaded_at")
    return PointPayload(
        text=text or "",
        source=meta.get("source", ""),
        chunk_index=int(meta.get("chunk_index", 0)),
        total_chunks=int(meta.get("total_chunks", 0)),
        uploaded_at=datetime.fromisoformat(uploaded_at) if uploaded_at else datetime.now(timezone.utc),
        metadata=json.loads(meta.get("metadata_json") or "{}"),
    )


class ChromaVectorStore(VectorStoreBase):
    """Chroma-backed vector store using cosine distance.

    Parameters
    ----------
    collection_name:
        Name of the Chroma collection.
    dimension:
        Embedding dimension enforced on upsert.
    host:
        Chroma server hostname.  Empty means an in-process ephemeral client.
    port:
        Chroma server port.
    client:
        Pre-built Chroma client; overrides *host* / *port*.
    """

    def __init__(
        self,
        collection_name: str = settings.chroma_collection,
        dimension: int = settings.vector_size,
        *,
        host: str = settings.chroma_host,
        port: int = settings.chroma_port,
        client: Any | None = None,
    ) -> None:
        super().__init__(collection_name, dimension, metric="cosine")
        if client is None:
            client = chromadb.HttpClient(host=host, port=port) if host else chromadb.EphemeralClient()
        self._client = client
        self._collection: Any | None = None

    @property
    def collection(self) -> Any:
        if self._collection is None:
            self.ensure_collection()
        return self._collection

    # -- VectorStoreBase overrides --------------------------------------------

    def ensure_collection(self) -> None:
        if self._collection is not None:
            return
        try:
            self._collection = self._client.get_or_create_collection(
                self.collection_name,
                metadata={"hnsw:space": self.metric, "dimension": self.dimension},
            )
        except Exception as exc:
            raise VectorStoreError(f"Failed to open collection '{self.collection_name}': {exc}") from exc
        logger.info("Collection '%s' ready (%dD, %s)", self.collection_name, self.dimension, self.metric)

    def _upsert(self, points: list[VectorPoint], *, wait: bool) -> None:
        # Chroma writes are synchronous, so every upsert already waits.
        try:
            self.collection.upsert(
                ids=[p.id for p in points],
                embeddings=[p.vector for p in points],
                documents=[p.payload.text for p in points],
                metadatas=[_payload_to_metadata(p.payload) for p in points],
            )
        except VectorStoreError:
            raise
        except Exception as exc:
            raise VectorStoreError(f"Upsert failed: {exc}") from exc

    def search(
        self,
        vector: list[float],
        *,
        k: int = 5,
        score_threshold: float | None = None,
    ) -> list[SearchHit]:
        try:
            results = self.collection.query(
                query_embeddings=[vector],
                n_results=k,
                include=["documents", "metadatas", "distances"],
            )
        except VectorStoreError:
            raise
        except Exception as exc:
            raise VectorStoreError(f"Search failed: {exc}") from exc

        hits: list[SearchHit] = []
        ids = (results.get("ids") or [[]])[0]
        docs = (results.get("documents") or [[]])[0]
        metas = (results.get("metadatas") or [[]])[0]
        distances = (results.get("distances") or [[]])[0]

        for point_id, text, meta, dist in zip(ids, docs, metas, distances):
            # Chroma returns cosine distance; similarity = 1 - distance.
            score = 1.0 - dist
            if score_threshold is not None and score < score_threshold:
                continue
            hits.append(SearchHit(id=point_id, score=score, payload=_metadata_to_payload(text, meta)))
        return hits

    def count(self, filters: list[MetadataFilter] | None = None) -> int:
        try:
            if not filters:
                return self.collection.count()
            matched = self.collection.get(where=_build_chroma_where(filters), include=[])
            return len(matched.get("ids", []))
        except (VectorStoreError, ValueError):
            raise
        except Exception as exc:
            raise VectorStoreError(f"Count failed: {exc}") from exc

    def collection_info(self) -> CollectionInfo | None:
        try:
            return CollectionInfo(
                name=self.collection_name,
                dimension=self.dimension,
                metric=(self.collection.metadata or {}).get("hnsw:space", self.metric),
                point_count=self.collection.count(),
            )
        except Exception:
            logger.warning("Could not read collection info", exc_info=True)
            return None

    def health_check(self) -> bool:
        try:
            self._client.heartbeat()
            return True
        except Exception:
            logger.warning("Chroma health-check failed", exc_info=True)
            return False

    def delete(self, filters: list[MetadataFilter]) -> None:
        where = _build_chroma_where(filters)
        if where is None:
            raise ValueError("delete requires at least one filter")
        self.collection.delete(where=where)
