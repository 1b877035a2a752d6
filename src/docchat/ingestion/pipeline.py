"""Ingestion pipeline — chunk, embed, and store documents as background jobs.

A file submission is validated synchronously, recorded as a
:class:`~docchat.jobs.Job`, and then processed by a detached
``asyncio`` task.  The job registry is the only channel back to the
caller: the HTTP request that submitted the file has usually returned by
the time processing finishes.

Progress checkpoints::

     5  read bytes
    15  extract text
    25  chunk text
    25→85  embed, one step per batch
    88  build vector points
    92  upsert (wait for completion)
   100  completed
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Any

from docchat.config import settings
from docchat.exceptions import EmptyContentError, ValidationError
from docchat.ingestion.chunker import Chunk, chunk_text
from docchat.ingestion.embedder import Embedder
from docchat.ingestion.loader import extract_document
from docchat.jobs import Job, JobRegistry, JobStatus
from docchat.retrieval.base import VectorStoreBase
from docchat.retrieval.models import PointPayload, VectorPoint
from docchat.validation import sanitize_input, validate_file_extension, validate_file_size

logger = logging.getLogger(__name__)

_EMBED_START = 25
_EMBED_END = 85


@dataclass
class IngestionResult:
    source: str
    chunks: int
    characters: int

    @property
    def message(self) -> str:
        return f"Successfully processed and stored {self.chunks} chunks"

    def as_dict(self) -> dict[str, Any]:
        return {
            "source": self.source,
            "chunks": self.chunks,
            "characters": self.characters,
            "message": self.message,
        }


def cleanup_temp_file(path: str | Path) -> None:
    """Remove an uploaded temp file.  A missing file is not an error."""
    try:
        Path(path).unlink(missing_ok=True)
        logger.debug("Deleted temp file %s", path)
    except OSError:
        logger.warning("Failed to delete temp file %s", path, exc_info=True)


def build_points(
    chunks: list[Chunk],
    vectors: list[list[float]],
    source: str,
    metadata: dict[str, Any] | None = None,
) -> list[VectorPoint]:
    """Pair each chunk with its vector under a fresh random id."""
    return [
        VectorPoint(
            vector=vector,
            payload=PointPayload(
                text=chunk.text,
                source=source,
                chunk_index=chunk.index,
                total_chunks=chunk.total_in_source,
                metadata=dict(metadata or {}),
            ),
        )
        for chunk, vector in zip(chunks, vectors)
    ]


class IngestionPipeline:
    """Turn uploaded sources into vector points.

    Parameters
    ----------
    embedder:
        Cache-aware embedder shared with the query path.
    store:
        Target vector store.
    jobs:
        Registry that job progress is reported into.
    batch_size:
        Number of chunks sent to the embedder per call.
    chunk_size, chunk_overlap:
        Forwarded to :func:`~docchat.ingestion.chunker.chunk_text`.
    """

    def __init__(
        self,
        embedder: Embedder,
        store: VectorStoreBase,
        jobs: JobRegistry,
        *,
        batch_size: int = settings.embed_batch_size,
        chunk_size: int = settings.chunk_size,
        chunk_overlap: int = settings.chunk_overlap,
    ) -> None:
        if batch_size < 1:
            raise ValueError("batch_size must be at least 1")
        self.embedder = embedder
        self.store = store
        self.jobs = jobs
        self.batch_size = batch_size
        self.chunk_size = chunk_size
        self.chunk_overlap = chunk_overlap
        self._tasks: dict[str, asyncio.Task[None]] = {}

    # -- public API -----------------------------------------------------------

    def submit_file(
        self,
        path: str | Path,
        filename: str,
        size: int,
        meta: dict[str, Any] | None = None,
    ) -> Job:
        """Validate an uploaded file and start processing it in the background.

        Must be called from a running event loop.  The temp file at *path*
        is owned by the pipeline from here on and is always removed.

        Raises
        ------
        ValidationError
            On a disallowed extension or oversized file.  No job is created.
        RuntimeError
            If no event loop is running.  No job is created.
        """
        try:
            validate_file_extension(filename)
            validate_file_size(size)
            loop = asyncio.get_running_loop()
        except (ValidationError, RuntimeError):
            cleanup_temp_file(path)
            raise

        job = self.jobs.create({"filename": filename, "size": size, **(meta or {})})
        task = loop.create_task(self._run_file_job(job.id, Path(path), filename))
        self._tasks[job.id] = task
        task.add_done_callback(lambda _t, job_id=job.id: self._tasks.pop(job_id, None))
        logger.info("Queued ingestion job %s for %s (%d bytes)", job.id, filename, size)
        return job

    async def ingest_text(self, text: str, source: str | None = None) -> IngestionResult:
        """Chunk, embed, and store raw *text* inline (no job).

        Raises
        ------
        ValidationError
            If *text* is blank.
        EmptyContentError
            If chunking yields nothing.
        """
        if not text or not text.strip():
            raise ValidationError("Text content is required", field="text")

        text = sanitize_input(text)
        source = sanitize_input(source or "manual-input")
        chunks = chunk_text(text, self.chunk_size, self.chunk_overlap)
        if not chunks:
            raise EmptyContentError("Text is too short to process", source=source)

        logger.info("Ingesting %d chunks of raw text from %s", len(chunks), source)
        vectors = await self.embedder.embed_batch([c.text for c in chunks])
        points = build_points(chunks, vectors, source)
        await asyncio.to_thread(self.store.upsert, points, wait=True)
        return IngestionResult(source=source, chunks=len(chunks), characters=len(text))

    async def wait_for(self, job_id: str) -> Job | None:
        """Await the background task for *job_id* (if still running)."""
        task = self._tasks.get(job_id)
        if task is not None:
            await asyncio.gather(task, return_exceptions=True)
        return self.jobs.get(job_id)

    async def drain(self) -> None:
        """Await every in-flight job, e.g. on shutdown."""
        if self._tasks:
            await asyncio.gather(*list(self._tasks.values()), return_exceptions=True)

    @property
    def active_jobs(self) -> int:
        return len(self._tasks)

    # -- background job ---------------------------------------------------------

    def _advance(self, job_id: str, progress: int, message: str) -> None:
        self.jobs.update(job_id, status=JobStatus.PROCESSING, progress=progress, message=message)

    async def _run_file_job(self, job_id: str, path: Path, filename: str) -> None:
        try:
            self._advance(job_id, 5, "Reading file")
            data = await asyncio.to_thread(path.read_bytes)

            self._advance(job_id, 15, "Extracting text")
            document = await asyncio.to_thread(extract_document, path, data, filename)
            logger.info("Job %s: extracted %d characters", job_id, len(document.text))

            chunks = chunk_text(document.text, self.chunk_size, self.chunk_overlap)
            self._advance(job_id, _EMBED_START, f"Chunking text: {len(chunks)} chunks")
            if not chunks:
                raise EmptyContentError(source=filename)

            vectors = await self._embed_with_progress(job_id, chunks)

            self._advance(job_id, 88, "Preparing vector points")
            points = build_points(chunks, vectors, filename, document.metadata)

            self._advance(job_id, 92, "Storing in vector database")
            await asyncio.to_thread(self.store.upsert, points, wait=True)

            result = IngestionResult(source=filename, chunks=len(chunks), characters=len(document.text))
            self.jobs.complete(job_id, {"filename": filename, **result.as_dict()})
            logger.info("Job %s completed: %d chunks stored", job_id, len(chunks))
        except Exception as exc:
            logger.exception("Job %s failed", job_id)
            self.jobs.fail(job_id, exc)
        finally:
            await asyncio.to_thread(cleanup_temp_file, path)

    async def _embed_with_progress(self, job_id: str, chunks: list[Chunk]) -> list[list[float]]:
        """Embed *chunks* in sequential batches, reporting linear progress."""
        vectors: list[list[float]] = []
        total_batches = -(-len(chunks) // self.batch_size)
        span = _EMBED_END - _EMBED_START

        for batch_no, start in enumerate(range(0, len(chunks), self.batch_size), 1):
            batch = chunks[start : start + self.batch_size]
            vectors.extend(await self.embedder.embed_batch([c.text for c in batch]))
            progress = _EMBED_START + (span * batch_no) // total_batches
            self._advance(job_id, progress, f"Embedding batch {batch_no}/{total_batches}")

        return vectors
