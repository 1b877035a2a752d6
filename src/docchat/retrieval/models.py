"""Domain models for vector points, search hits, and retrieved context."""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any
from uuid import uuid4

from pydantic import BaseModel, Field


class MetadataFilter(BaseModel):
    """Declarative payload filter for ``count`` / ``delete``.

    Attributes
    ----------
    field:
        The payload key to filter on (e.g. ``"source"``).
    operator:
        Comparison operator — one of ``eq``, ``ne``, ``gt``, ``gte``,
        ``lt``, ``lte``, ``in``, ``nin``.
    value:
        The value (or list of values for ``in`` / ``nin``) to compare against.
    """

    field: str
    operator: str = "eq"
    value: Any = None

    @classmethod
    def equals(cls, field: str, value: Any) -> MetadataFilter:
        return cls(field=field, operator="eq", value=value)

    @classmethod
    def one_of(cls, field: str, values: list[Any]) -> MetadataFilter:
        return cls(field=field, operator="in", value=values)


class PointPayload(BaseModel):
    """Payload stored alongside each vector."""

    text: str
    source: str
    chunk_index: int
    total_chunks: int
    uploaded_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    metadata: dict[str, Any] = Field(default_factory=dict)


class VectorPoint(BaseModel):
    """An (id, vector, payload) record for similarity search.

    Ids are random, so ingesting the same document twice stores two
    copies of every chunk.
    """

    id: str = Field(default_factory=lambda: str(uuid4()))
    vector: list[float]
    payload: PointPayload


class SearchHit(BaseModel):
    """One ranked result from :meth:`VectorStoreBase.search`."""

    id: str
    score: float
    payload: PointPayload


class RetrievedContext(BaseModel):
    """The slice of a search hit that reaches the prompt and chat history."""

    text: str = ""
    source: str = ""
    score: float | None = None

    @classmethod
    def from_hit(cls, hit: SearchHit) -> RetrievedContext:
        return cls(text=hit.payload.text, source=hit.payload.source, score=hit.score)


class CollectionInfo(BaseModel):
    name: str
    dimension: int
    metric: str
    point_count: int
