"""Unit tests for the retrieval layer — models, base, and the Chroma store."""

from __future__ import annotations

from uuid import uuid4

import pytest

from docchat.exceptions import VectorStoreError
from docchat.retrieval.models import (
    MetadataFilter,
    PointPayload,
    RetrievedContext,
    SearchHit,
    VectorPoint,
)

DIM = 8


def _point(vector: list[float], text: str = "chunk", source: str = "guide.md", index: int = 0) -> VectorPoint:
    return VectorPoint(
        vector=vector,
        payload=PointPayload(text=text, source=source, chunk_index=index, total_chunks=2),
    )


def _axis(i: int) -> list[float]:
    vec = [0.0] * DIM
    vec[i] = 1.0
    return vec


# ── Model tests ─────────────────────────────────────────────────────────


class TestMetadataFilter:
    def test_equals_factory(self) -> None:
        f = MetadataFilter.equals("source", "guide.md")
        assert f.field == "source"
        assert f.operator == "eq"
        assert f.value == "guide.md"

    def test_one_of_factory(self) -> None:
        f = MetadataFilter.one_of("source", ["a.md", "b.md"])
        assert f.operator == "in"
        assert f.value == ["a.md", "b.md"]


class TestVectorPoint:
    def test_ids_are_random(self) -> None:
        assert _point(_axis(0)).id != _point(_axis(0)).id

    def test_payload_timestamp_is_utc(self) -> None:
        assert _point(_axis(0)).payload.uploaded_at.tzinfo is not None


def test_retrieved_context_from_hit() -> None:
    hit = SearchHit(id="p1", score=0.83, payload=_point(_axis(0), text="KServe scales").payload)
    ctx = RetrievedContext.from_hit(hit)
    assert ctx == RetrievedContext(text="KServe scales", source="guide.md", score=0.83)


# ── Base-class behaviour ───────────────────────────────────────────────


class TestUpsertDimensionCheck:
    def test_matching_batch_is_stored(self, fake_store) -> None:
        fake_store.upsert([_point(_axis(0)), _point(_axis(1))])
        assert fake_store.count() == 2
        assert fake_store.upsert_calls == [(2, True)]

    def test_one_bad_vector_rejects_whole_batch(self, fake_store) -> None:
        with pytest.raises(VectorStoreError, match="dimension mismatch") as exc_info:
            fake_store.upsert([_point(_axis(0)), _point([1.0, 0.0])])
        assert exc_info.value.details["expected"] == DIM
        assert exc_info.value.details["received"] == 2
        assert fake_store.count() == 0
        assert fake_store.upsert_calls == []

    def test_empty_batch_is_noop(self, fake_store) -> None:
        fake_store.upsert([])
        assert fake_store.upsert_calls == []

    def test_delete_unsupported_by_default(self, fake_store) -> None:
        with pytest.raises(NotImplementedError):
            fake_store.delete([MetadataFilter.equals("source", "a.md")])


# ── Chroma where-clause builder tests ──────────────────────────────────


class TestBuildChromaWhere:
    @pytest.fixture(autouse=True)
    def _skip_if_chroma_broken(self) -> None:
        """Skip if chromadb can't be imported in this environment."""
        try:
            from docchat.retrieval.chroma_store import _build_chroma_where  # noqa: F401
        except Exception:
            pytest.skip("chromadb not importable in this environment")

    def test_single_filter(self) -> None:
        from docchat.retrieval.chroma_store import _build_chroma_where

        where = _build_chroma_where([MetadataFilter.equals("source", "a.md")])
        assert where == {"source": {"$eq": "a.md"}}

    def test_multiple_filters_produce_and(self) -> None:
        from docchat.retrieval.chroma_store import _build_chroma_where

        filters = [
            MetadataFilter.equals("source", "a.md"),
            MetadataFilter(field="chunk_index", operator="gte", value=5),
        ]
        where = _build_chroma_where(filters)
        assert where == {"$and": [{"source": {"$eq": "a.md"}}, {"chunk_index": {"$gte": 5}}]}

    def test_none_when_empty(self) -> None:
        from docchat.retrieval.chroma_store import _build_chroma_where

        assert _build_chroma_where([]) is None

    def test_unsupported_operator_raises(self) -> None:
        from docchat.retrieval.chroma_store import _build_chroma_where

        with pytest.raises(ValueError, match="Unsupported filter operator"):
            _build_chroma_where([MetadataFilter(field="x", operator="regex", value=".*")])


class TestPayloadMetadata:
    @pytest.fixture(autouse=True)
    def _skip_if_chroma_broken(self) -> None:
        pytest.importorskip("chromadb")

    def test_round_trip_keeps_nested_metadata(self) -> None:
        from docchat.retrieval.chroma_store import _metadata_to_payload, _payload_to_metadata

        payload = PointPayload(
            text="t", source="a.pdf", chunk_index=1, total_chunks=3, metadata={"title": "T", "pages": 4}
        )
        flat = _payload_to_metadata(payload)
        assert all(not isinstance(v, dict) for v in flat.values())
        assert _metadata_to_payload("t", flat) == payload


# ── Chroma store on an in-process client ───────────────────────────────


class TestChromaVectorStore:
    @pytest.fixture()
    def store(self):
        chromadb = pytest.importorskip("chromadb")
        from docchat.retrieval.chroma_store import ChromaVectorStore

        try:
            client = chromadb.EphemeralClient()
        except Exception:
            pytest.skip("chromadb ephemeral client unavailable")
        store = ChromaVectorStore(f"test-{uuid4().hex[:12]}", DIM, client=client)
        store.ensure_collection()
        return store

    def test_upsert_then_search_ranks_by_cosine(self, store) -> None:
        store.upsert(
            [
                _point(_axis(0), text="exact", index=0),
                _point([0.6, 0.8, 0, 0, 0, 0, 0, 0], text="close", index=1),
                _point(_axis(2), text="orthogonal", index=2),
            ]
        )
        hits = store.search(_axis(0), k=3)
        assert [h.payload.text for h in hits] == ["exact", "close", "orthogonal"]
        assert hits[0].score == pytest.approx(1.0, abs=1e-4)
        assert hits[1].score == pytest.approx(0.6, abs=1e-4)

    def test_score_threshold_drops_weak_hits(self, store) -> None:
        store.upsert([_point(_axis(0), text="exact"), _point(_axis(1), text="unrelated")])
        hits = store.search(_axis(0), k=5, score_threshold=0.5)
        assert [h.payload.text for h in hits] == ["exact"]

    def test_count_with_filters(self, store) -> None:
        store.upsert([_point(_axis(0), source="a.md"), _point(_axis(1), source="b.md"), _point(_axis(2), source="a.md")])
        assert store.count() == 3
        assert store.count([MetadataFilter.equals("source", "a.md")]) == 2

    def test_delete_by_source(self, store) -> None:
        store.upsert([_point(_axis(0), source="a.md"), _point(_axis(1), source="b.md")])
        store.delete([MetadataFilter.equals("source", "a.md")])
        assert store.count() == 1

    def test_dimension_mismatch_rejected(self, store) -> None:
        with pytest.raises(VectorStoreError):
            store.upsert([_point([1.0, 0.0, 0.0])])
        assert store.count() == 0

    def test_collection_info_and_health(self, store) -> None:
        store.upsert([_point(_axis(0))])
        info = store.collection_info()
        assert info is not None
        assert info.metric == "cosine"
        assert info.point_count == 1
        assert store.health_check() is True
