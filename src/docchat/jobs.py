"""In-memory ledger of background job state.

Jobs live for the lifetime of the process.  Each mutation builds an
updated copy and swaps it in under a lock, and readers always receive a
copy, so a poller can never see a half-applied update.
"""

from __future__ import annotations

import threading
from datetime import datetime, timezone
from enum import Enum
from typing import Any
from uuid import uuid4

from pydantic import BaseModel, Field


def _now() -> datetime:
    return datetime.now(timezone.utc)


class JobStatus(str, Enum):
    PENDING = "pending"
    PROCESSING = "processing"
    COMPLETED = "completed"
    FAILED = "failed"

    @property
    def is_terminal(self) -> bool:
        return self in (JobStatus.COMPLETED, JobStatus.FAILED)


class Job(BaseModel):
    """Snapshot of one background job."""

    id: str = Field(default_factory=lambda: str(uuid4()))
    status: JobStatus = JobStatus.PENDING
    progress: int = Field(default=0, ge=0, le=100)
    message: str = "Queued"
    meta: dict[str, Any] = Field(default_factory=dict)
    result: Any = None
    error: str | None = None
    created_at: datetime = Field(default_factory=_now)
    updated_at: datetime = Field(default_factory=_now)


_MUTABLE_FIELDS = frozenset({"status", "progress", "message", "meta", "result", "error"})


class JobRegistry:
    """Thread-safe store of :class:`Job` records keyed by id."""

    def __init__(self) -> None:
        self._jobs: dict[str, Job] = {}
        self._lock = threading.Lock()

    def create(self, meta: dict[str, Any] | None = None) -> Job:
        job = Job(meta=dict(meta or {}))
        with self._lock:
            self._jobs[job.id] = job
        return job.model_copy(deep=True)

    def get(self, job_id: str) -> Job | None:
        with self._lock:
            job = self._jobs.get(job_id)
            return job.model_copy(deep=True) if job is not None else None

    def update(self, job_id: str, **fields: Any) -> Job | None:
        """Merge *fields* into the job and refresh ``updated_at``.

        Returns the new snapshot, or ``None`` when *job_id* is unknown.
        """
        unknown = set(fields) - _MUTABLE_FIELDS
        if unknown:
            raise ValueError(f"Cannot update job fields: {sorted(unknown)}")
        if "status" in fields:
            fields["status"] = JobStatus(fields["status"])

        with self._lock:
            job = self._jobs.get(job_id)
            if job is None:
                return None
            updated = job.model_copy(update={**fields, "updated_at": _now()}, deep=True)
            self._jobs[job_id] = updated
            return updated.model_copy(deep=True)

    def complete(self, job_id: str, result: Any = None) -> Job | None:
        return self.update(
            job_id,
            status=JobStatus.COMPLETED,
            progress=100,
            message="Completed",
            result=result,
        )

    def fail(self, job_id: str, error: BaseException | str) -> Job | None:
        """Mark the job failed, keeping whatever progress it had reached."""
        message = getattr(error, "message", None) or str(error)
        return self.update(job_id, status=JobStatus.FAILED, message=message, error=str(error))

    def __len__(self) -> int:
        with self._lock:
            return len(self._jobs)
