"""Per-user, capacity-bounded conversation logs.

Each user has an independent log in insertion order.  When a log is full
the oldest exchange is dropped.  Unknown users simply have empty logs.
"""

from __future__ import annotations

import math
import threading
from collections import deque
from datetime import datetime, timezone
from typing import Any
from uuid import uuid4

from pydantic import BaseModel, Field

from docchat.config import settings
from docchat.retrieval.models import RetrievedContext


class ConversationMessage(BaseModel):
    """One completed query/answer exchange."""

    id: str = Field(default_factory=lambda: uuid4().hex)
    user_id: str
    query: str
    response: str
    contexts: list[RetrievedContext] = Field(default_factory=list)
    timestamp: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))


class HistoryPage(BaseModel):
    user_id: str
    messages: list[ConversationMessage]
    page: int
    page_size: int
    total: int
    total_pages: int


class ConversationStore:
    """In-memory chat history keyed by user id.

    Parameters
    ----------
    max_length:
        Maximum exchanges retained per user.
    """

    def __init__(self, max_length: int = settings.max_history_length) -> None:
        self.max_length = max_length
        self._logs: dict[str, deque[ConversationMessage]] = {}
        self._lock = threading.Lock()

    def append(
        self,
        user_id: str,
        query: str,
        response: str,
        contexts: list[RetrievedContext] | None = None,
    ) -> ConversationMessage:
        message = ConversationMessage(
            user_id=user_id,
            query=query,
            response=response,
            contexts=list(contexts or []),
        )
        with self._lock:
            log = self._logs.get(user_id)
            if log is None:
                log = self._logs[user_id] = deque(maxlen=self.max_length)
            log.append(message)
        return message

    def page(self, user_id: str, page: int = 1, page_size: int | None = None) -> HistoryPage:
        """Return one page of *user_id*'s history, newest first.

        Pages are 1-based; anything below 1 is treated as page 1.
        """
        page = max(1, page)
        page_size = max(1, page_size or settings.history_page_size)
        with self._lock:
            newest_first = list(reversed(self._logs.get(user_id, ())))
        total = len(newest_first)
        start = (page - 1) * page_size
        return HistoryPage(
            user_id=user_id,
            messages=newest_first[start : start + page_size],
            page=page,
            page_size=page_size,
            total=total,
            total_pages=math.ceil(total / page_size),
        )

    def recent_window(self, user_id: str, n: int | None = None) -> list[ConversationMessage]:
        """Return the last *n* exchanges, oldest first."""
        n = settings.rag_context_window if n is None else n
        if n <= 0:
            return []
        with self._lock:
            log = list(self._logs.get(user_id, ()))
        return log[-n:]

    def clear(self, user_id: str) -> None:
        with self._lock:
            self._logs.pop(user_id, None)

    def users(self) -> list[str]:
        with self._lock:
            return list(self._logs)

    def stats(self) -> dict[str, Any]:
        with self._lock:
            users = [
                {
                    "user_id": user_id,
                    "message_count": len(log),
                    "last_activity": log[-1].timestamp if log else None,
                }
                for user_id, log in self._logs.items()
            ]
        return {
            "total_users": len(users),
            "total_messages": sum(u["message_count"] for u in users),
            "users": users,
        }
