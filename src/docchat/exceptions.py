"""Exception hierarchy shared by the ingestion and query pipelines.

Every error carries a human-readable ``message`` plus an optional
``details`` dict so the HTTP layer and job records can surface context
without parsing strings.

Hierarchy
---------
- :class:`DocChatError`
    - :class:`ValidationError` — bad input, reported synchronously
        - :class:`AuthenticationError`
        - :class:`EmptyContentError`
    - :class:`JobNotFoundError`
    - :class:`ProviderError` — an external collaborator failed
        - :class:`EmbeddingProviderError`
        - :class:`VectorStoreError`
        - :class:`LLMProviderError`
"""

from __future__ import annotations

from typing import Any


class DocChatError(Exception):
    """Base exception for all application errors."""

    def __init__(self, message: str, details: dict[str, Any] | None = None) -> None:
        self.message = message
        self.details = details or {}
        super().__init__(message)

    def __str__(self) -> str:
        if self.details:
            return f"{self.message} | Details: {self.details}"
        return self.message


class ValidationError(DocChatError):
    """Raised when input validation fails.  Never retried."""

    def __init__(
        self,
        message: str,
        field: str | None = None,
        details: dict[str, Any] | None = None,
    ) -> None:
        details = details or {}
        if field:
            details["field"] = field
        super().__init__(message, details)


class AuthenticationError(ValidationError):
    """Raised when the shared upload secret does not match."""

    def __init__(self, message: str = "Invalid password") -> None:
        super().__init__(message, field="password")


class EmptyContentError(ValidationError):
    """Raised when a source yields zero chunks."""

    def __init__(self, message: str = "No text content found", source: str | None = None) -> None:
        super().__init__(message, details={"source": source} if source else None)


class JobNotFoundError(DocChatError):
    """Raised when a polled job id is unknown."""

    def __init__(self, job_id: str) -> None:
        super().__init__(f"Job not found: {job_id}", {"job_id": job_id})


class ProviderError(DocChatError):
    """An external collaborator (embedding, vector store, LLM) failed.

    Fatal to the current unit of work: one query or one ingestion job.
    """

    provider: str = "provider"

    def __init__(self, message: str, details: dict[str, Any] | None = None) -> None:
        details = details or {}
        details.setdefault("provider", self.provider)
        super().__init__(message, details)


class EmbeddingProviderError(ProviderError):
    provider = "embedding"


class VectorStoreError(ProviderError):
    provider = "vector_store"


class LLMProviderError(ProviderError):
    provider = "llm"
