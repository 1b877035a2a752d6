"""Abstract base class for vector-store backends.

Adding a new backend (Qdrant, Pinecone, Weaviate …) only requires
subclassing :class:`VectorStoreBase` and implementing the abstract
methods.  Dimension checking on upsert is shared here so every backend
rejects mismatched batches the same way.
"""

from __future__ import annotations

from abc import ABC, abstractmethod

from docchat.exceptions import VectorStoreError
from docchat.retrieval.models import CollectionInfo, MetadataFilter, SearchHit, VectorPoint


class VectorStoreBase(ABC):
    """Backend-agnostic vector-store interface.

    Parameters
    ----------
    collection_name:
        Logical name of the collection / index / namespace.
    dimension:
        Vector length every stored point must have.
    metric:
        Similarity metric the collection is created with.
    """

    def __init__(self, collection_name: str, dimension: int, metric: str = "cosine") -> None:
        self.collection_name = collection_name
        self.dimension = dimension
        self.metric = metric

    # -- shared behaviour ----------------------------------------------------

    def upsert(self, points: list[VectorPoint], *, wait: bool = True) -> None:
        """Insert or replace *points*.

        The whole batch is rejected if any vector has the wrong dimension.
        With ``wait=True`` the call returns only once the write is visible
        to searches.
        """
        for point in points:
            if len(point.vector) != self.dimension:
                raise VectorStoreError(
                    "Vector dimension mismatch; batch rejected",
                    {
                        "point_id": point.id,
                        "expected": self.dimension,
                        "received": len(point.vector),
                    },
                )
        if points:
            self._upsert(points, wait=wait)

    # -- required overrides ---------------------------------------------------

    @abstractmethod
    def ensure_collection(self) -> None:
        """Create the collection if it does not exist yet."""
        ...

    @abstractmethod
    def _upsert(self, points: list[VectorPoint], *, wait: bool) -> None:
        ...

    @abstractmethod
    def search(
        self,
        vector: list[float],
        *,
        k: int = 5,
        score_threshold: float | None = None,
    ) -> list[SearchHit]:
        """Return up to *k* hits ranked by similarity (higher = closer).

        Hits scoring below *score_threshold* are dropped.
        """
        ...

    @abstractmethod
    def count(self, filters: list[MetadataFilter] | None = None) -> int:
        ...

    @abstractmethod
    def collection_info(self) -> CollectionInfo | None:
        """Return collection metadata, or ``None`` if it cannot be read."""
        ...

    @abstractmethod
    def health_check(self) -> bool:
        """Return ``True`` when the backend is reachable and ready."""
        ...

    # -- optional overrides ---------------------------------------------------

    def delete(self, filters: list[MetadataFilter]) -> None:
        """Delete points matching *filters*.  Optional — raises by default."""
        raise NotImplementedError(f"{type(self).__name__} does not support delete")
