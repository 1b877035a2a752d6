"""Query pipeline — retrieve context and stream a grounded answer.

``QueryPipeline.stream`` is an async generator of :class:`StreamEvent`.
It always finishes with exactly one terminal event: :class:`DoneEvent`
on success or :class:`ErrorEvent` if any provider call failed, so a
consumer can tell a complete answer from a truncated one.  Only
successful exchanges are written to the conversation store.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import AsyncIterator
from typing import Any, Literal, Union

from pydantic import BaseModel, Field

from docchat.config import settings
from docchat.conversation import ConversationStore
from docchat.exceptions import DocChatError, LLMProviderError, ProviderError, VectorStoreError
from docchat.generation.prompts import build_rag_messages
from docchat.ingestion.embedder import Embedder
from docchat.retrieval.base import VectorStoreBase
from docchat.retrieval.models import RetrievedContext

logger = logging.getLogger(__name__)


class TokenEvent(BaseModel):
    type: Literal["token"] = "token"
    chunk: str
    done: bool = False


class DoneEvent(BaseModel):
    type: Literal["done"] = "done"
    chunk: str = ""
    done: bool = True
    contexts: list[RetrievedContext] = Field(default_factory=list)


class ErrorEvent(BaseModel):
    type: Literal["error"] = "error"
    error: str
    done: bool = True


StreamEvent = Union[TokenEvent, DoneEvent, ErrorEvent]


def to_sse(event: StreamEvent) -> str:
    """Serialise *event* as one server-sent-events frame."""
    return f"data: {event.model_dump_json(exclude={'type'})}\n\n"


def _content_text(content: Any) -> str:
    """Flatten a LangChain message-chunk ``content`` into plain text."""
    if isinstance(content, str):
        return content
    if isinstance(content, list):
        return "".join(
            part if isinstance(part, str) else str(part.get("text", "")) for part in content
        )
    return ""


class QueryPipeline:
    """Embed → search → assemble prompt → stream → persist.

    Parameters
    ----------
    embedder:
        Shared cache-aware embedder.
    store:
        Vector store searched for context.
    history:
        Conversation store providing the recent window and receiving the
        finished exchange.
    llm:
        LangChain chat model supporting ``astream``.
    top_k, min_score, context_window:
        Retrieval and history limits.
    """

    def __init__(
        self,
        embedder: Embedder,
        store: VectorStoreBase,
        history: ConversationStore,
        llm: Any,
        *,
        top_k: int = settings.rag_top_k,
        min_score: float = settings.rag_min_score,
        context_window: int = settings.rag_context_window,
    ) -> None:
        self.embedder = embedder
        self.store = store
        self.history = history
        self.llm = llm
        self.top_k = top_k
        self.min_score = min_score
        self.context_window = context_window

    async def retrieve(self, query: str) -> list[RetrievedContext]:
        """Embed *query* and return contexts scoring at least ``min_score``."""
        vector = await self.embedder.embed(query)
        try:
            hits = await asyncio.to_thread(
                self.store.search, vector, k=self.top_k, score_threshold=self.min_score
            )
        except VectorStoreError:
            raise
        except Exception as exc:
            raise VectorStoreError(f"Search failed: {exc}") from exc
        return [RetrievedContext.from_hit(hit) for hit in hits]

    async def stream(self, user_id: str, query: str) -> AsyncIterator[StreamEvent]:
        """Yield answer tokens as they arrive, then one terminal event."""
        try:
            contexts = await self.retrieve(query)
            logger.info("Found %d relevant chunks for user %s", len(contexts), user_id)

            recent = self.history.recent_window(user_id, self.context_window)
            messages = build_rag_messages(query, contexts, recent)

            parts: list[str] = []
            try:
                async for increment in self.llm.astream(messages):
                    text = _content_text(getattr(increment, "content", increment))
                    if text:
                        parts.append(text)
                        yield TokenEvent(chunk=text)
            except Exception as exc:
                raise LLMProviderError(f"Generation failed: {exc}") from exc

            answer = "".join(parts)
            self.history.append(user_id, query, answer, contexts)
            logger.info("Response completed for user %s (%d chars)", user_id, len(answer))
            yield DoneEvent(contexts=contexts)
        except DocChatError as exc:
            logger.error("Query failed for user %s: %s", user_id, exc.message)
            yield ErrorEvent(error=exc.message)

    async def answer(self, user_id: str, query: str) -> tuple[str, list[RetrievedContext]]:
        """Drain :meth:`stream` into a complete answer.

        Raises
        ------
        ProviderError
            If the stream ended with an error event.
        """
        parts: list[str] = []
        async for event in self.stream(user_id, query):
            if isinstance(event, TokenEvent):
                parts.append(event.chunk)
            elif isinstance(event, DoneEvent):
                return "".join(parts), event.contexts
            else:
                raise ProviderError(event.error)
        raise ProviderError("Stream ended without a terminal event")
