"""FastAPI application exposing ingestion, job polling, and streaming chat."""

from __future__ import annotations

import asyncio
import logging
import shutil
import tempfile
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from datetime import datetime, timezone
from pathlib import Path
from typing import Any

from fastapi import APIRouter, Depends, FastAPI, File, Form, Query, Request, UploadFile
from fastapi.responses import JSONResponse, StreamingResponse
from pydantic import BaseModel, ConfigDict, Field

from docchat.config import settings
from docchat.exceptions import (
    AuthenticationError,
    DocChatError,
    JobNotFoundError,
    ProviderError,
    ValidationError,
)
from docchat.generation.llm import llm_info
from docchat.logging_utils import configure_logging
from docchat.query import to_sse
from docchat.serving.dependencies import Services, get_services
from docchat.validation import (
    sanitize_input,
    validate_pagination,
    validate_password,
    validate_required,
)

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    configure_logging(settings.log_level)
    services = app.dependency_overrides.get(get_services, get_services)()
    try:
        await asyncio.to_thread(services.store.ensure_collection)
    except DocChatError:
        logger.warning("Vector store not ready at startup", exc_info=True)
    yield
    await services.ingestion.drain()


app = FastAPI(
    title="DocChat API",
    version="0.1.0",
    description="Document ingestion and retrieval-augmented chat.",
    lifespan=lifespan,
)
router = APIRouter(prefix="/api")


# ── Request schemas ───────────────────────────────────────────────────
class ChatRequest(BaseModel):
    """Incoming question from the user."""

    model_config = ConfigDict(populate_by_name=True)

    user_id: str = Field(default="", alias="userId")
    query: str = ""


class TextUploadRequest(BaseModel):
    password: str = ""
    text: str = ""
    source: str | None = None


def _ok(data: Any, status_code: int = 200) -> JSONResponse:
    return JSONResponse({"success": True, "data": data}, status_code=status_code)


# ── Error mapping ─────────────────────────────────────────────────────
def _status_for(exc: DocChatError) -> int:
    if isinstance(exc, AuthenticationError):
        return 401
    if isinstance(exc, ValidationError):
        return 400
    if isinstance(exc, JobNotFoundError):
        return 404
    if isinstance(exc, ProviderError):
        return 502
    return 500


@app.exception_handler(DocChatError)
async def docchat_error_handler(request: Request, exc: DocChatError) -> JSONResponse:
    status_code = _status_for(exc)
    log = logger.warning if status_code < 500 else logger.error
    log("%s %s failed: %s", request.method, request.url.path, exc)
    return JSONResponse({"success": False, "error": exc.message}, status_code=status_code)


# ── System ────────────────────────────────────────────────────────────
@router.get("/health")
async def health(services: Services = Depends(get_services)) -> JSONResponse:
    """Liveness probe including vector-store reachability."""
    store_ok = await asyncio.to_thread(services.store.health_check)
    body = {
        "success": store_ok,
        "status": "healthy" if store_ok else "unhealthy",
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "services": {
            "vector_store": {"status": "connected" if store_ok else "unreachable"},
            "embedding": services.embedder.info(),
            "llm": llm_info(),
            "cache": services.cache.stats(),
            "jobs": {"active": services.ingestion.active_jobs},
        },
        "config": {
            "rag_top_k": settings.rag_top_k,
            "rag_min_score": settings.rag_min_score,
            "chunk_size": settings.chunk_size,
        },
    }
    return JSONResponse(body, status_code=200 if store_ok else 503)


@router.get("/info")
async def info(services: Services = Depends(get_services)) -> JSONResponse:
    collection = await asyncio.to_thread(services.store.collection_info)
    return _ok(
        {
            "embedding": services.embedder.info(),
            "llm": llm_info(),
            "vector_db": {
                "collection_name": services.store.collection_name,
                "vector_size": services.store.dimension,
                "point_count": collection.point_count if collection else 0,
            },
            "rag": {
                "top_k": settings.rag_top_k,
                "min_score": settings.rag_min_score,
                "context_window": settings.rag_context_window,
            },
        }
    )


# ── Chat ──────────────────────────────────────────────────────────────
@router.post("/chat")
async def chat(request: ChatRequest, services: Services = Depends(get_services)) -> StreamingResponse:
    """Stream an answer as server-sent events.

    Each frame is ``data: {"chunk": ..., "done": false}``; the last frame
    has ``done: true`` and carries either ``contexts`` or ``error``.
    """
    validate_required({"userId": request.user_id, "query": request.query}, ["userId", "query"])
    user_id = sanitize_input(request.user_id)
    query = sanitize_input(request.query)
    logger.info("Chat request from user %s", user_id)

    async def frames() -> AsyncIterator[str]:
        async for event in services.query.stream(user_id, query):
            yield to_sse(event)

    return StreamingResponse(
        frames(),
        media_type="text/event-stream",
        headers={"Cache-Control": "no-cache", "Connection": "keep-alive"},
    )


@router.get("/chat/history/{user_id}")
async def chat_history(
    user_id: str,
    page: str | None = None,
    page_size: str | None = Query(default=None, alias="pageSize"),
    services: Services = Depends(get_services),
) -> JSONResponse:
    page_no, page_size = validate_pagination(page or 1, page_size or settings.history_page_size)
    history = services.history.page(sanitize_input(user_id), page_no, page_size)
    return _ok(history.model_dump(mode="json"))


@router.delete("/chat/history/{user_id}")
async def clear_chat_history(user_id: str, services: Services = Depends(get_services)) -> JSONResponse:
    services.history.clear(sanitize_input(user_id))
    return _ok({"success": True, "message": "Chat history cleared"})


@router.get("/chat/stats")
async def chat_stats(services: Services = Depends(get_services)) -> JSONResponse:
    stats = services.history.stats()
    for user in stats["users"]:
        if user["last_activity"] is not None:
            user["last_activity"] = user["last_activity"].isoformat()
    return _ok(stats)


# ── Upload ────────────────────────────────────────────────────────────
def _save_upload(upload: UploadFile) -> tuple[Path, int]:
    """Spool *upload* to a temp file and return its path and size."""
    suffix = Path(upload.filename or "").suffix.lower()
    with tempfile.NamedTemporaryFile(prefix="docchat_", suffix=suffix, delete=False) as fh:
        shutil.copyfileobj(upload.file, fh)
        return Path(fh.name), fh.tell()


@router.post("/upload/document", status_code=202)
async def upload_document(
    file: UploadFile = File(...),
    password: str = Form(""),
    services: Services = Depends(get_services),
) -> JSONResponse:
    """Accept a file for background ingestion and return its job id."""
    validate_password(password)
    if not file.filename:
        raise ValidationError("No file uploaded", field="file")

    temp_path, size = await asyncio.to_thread(_save_upload, file)
    logger.info("Received %s (%.2f KB) -> %s", file.filename, size / 1024, temp_path)

    job = services.ingestion.submit_file(temp_path, file.filename, size)
    return _ok(
        {
            "jobId": job.id,
            "status": job.status.value,
            "message": f"Upload accepted. Poll /api/upload/status/{job.id} for progress.",
        },
        status_code=202,
    )


@router.get("/upload/status/{job_id}")
async def upload_status(job_id: str, services: Services = Depends(get_services)) -> JSONResponse:
    job = services.jobs.get(job_id)
    if job is None:
        raise JobNotFoundError(job_id)
    return _ok(job.model_dump(mode="json"))


@router.post("/upload/text")
async def upload_text(request: TextUploadRequest, services: Services = Depends(get_services)) -> JSONResponse:
    validate_password(request.password)
    result = await services.ingestion.ingest_text(request.text, request.source)
    return _ok(result.as_dict())


@router.get("/upload/stats")
async def upload_stats(services: Services = Depends(get_services)) -> JSONResponse:
    count = await asyncio.to_thread(services.store.count)
    collection = await asyncio.to_thread(services.store.collection_info)
    return _ok(
        {
            "total_chunks": count,
            "collection_info": (
                {"vector_size": collection.dimension, "distance": collection.metric}
                if collection
                else None
            ),
        }
    )


app.include_router(router)
