"""Shared configuration loaded from environment / .env file."""

from __future__ import annotations

from pydantic import Field
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Application-wide settings, populated from env vars or .env file."""

    # Upload
    upload_password: str = Field(default="change-me", description="Shared secret required for uploads")
    max_file_size: int = Field(default=250 * 1024 * 1024, description="Maximum upload size in bytes")
    allowed_extensions: list[str] = [".pdf", ".txt"]

    # Vector store
    chroma_host: str = Field(
        default="",
        description="Chroma server hostname. Leave empty to use an in-process ephemeral client.",
    )
    chroma_port: int = 8000
    chroma_collection: str = "rag_documents"

    # Embedding
    embedding_method: str = Field(default="huggingface", description="'huggingface' (local) or 'openai'")
    embedding_model: str = "sentence-transformers/all-MiniLM-L6-v2"
    embedding_dimensions: int = 384
    openai_embedding_model: str = "text-embedding-3-small"
    openai_embedding_dimensions: int = 1536
    embedding_timeout: float = 30.0

    # LLM
    openai_api_key: str = Field(default="", description="OpenAI API key (or dummy value for local vLLM)")
    llm_model_name: str = Field(default="gpt-4o-mini", description="LLM model identifier")
    llm_base_url: str = Field(
        default="",
        description=(
            "Base URL for the LLM API. Leave empty to use OpenAI cloud. "
            "Set to any OpenAI-compatible endpoint (vLLM, KServe) for local serving."
        ),
    )
    llm_temperature: float = 0.7
    llm_max_tokens: int = 2000
    llm_timeout: float = 60.0
    llm_max_retries: int = 3

    # Retrieval
    rag_top_k: int = 5
    rag_min_score: float = 0.5
    rag_context_window: int = Field(default=10, description="Previous exchanges replayed into the prompt")

    # Ingestion
    chunk_size: int = 500
    chunk_overlap: int = 50
    embed_batch_size: int = 16

    # Embedding cache
    cache_max_size: int = 10_000
    cache_ttl_seconds: float = 3600.0

    # Chat history
    max_history_length: int = 50
    history_page_size: int = 20

    log_level: str = "INFO"

    model_config = {"env_file": ".env", "env_file_encoding": "utf-8"}

    @property
    def vector_size(self) -> int:
        """Dimension of the active embedding model (must match the collection)."""
        if self.embedding_method.lower() == "openai":
            return self.openai_embedding_dimensions
        return self.embedding_dimensions


# Singleton — import `settings` wherever needed.
settings = Settings()
