"""LLM initialisation — single place to swap providers.

Supports two modes:

1. **OpenAI cloud** (default) — set ``OPENAI_API_KEY``.
2. **OpenAI-compatible endpoint** — set ``LLM_BASE_URL`` to a vLLM or
   KServe service (e.g. ``http://llm-server.default.svc.cluster.local/v1``).
   Such runtimes expose ``/v1/chat/completions``, so ``ChatOpenAI`` works
   unchanged.
"""

from __future__ import annotations

import logging
from typing import Any

from langchain_openai import ChatOpenAI

from docchat.config import settings

logger = logging.getLogger(__name__)


def get_llm(streaming: bool = True) -> ChatOpenAI:
    """Return the configured chat model.

    Timeouts and retries are configured on the client; the query
    pipeline itself never retries.
    """
    kwargs: dict = {
        "model": settings.llm_model_name,
        "temperature": settings.llm_temperature,
        "max_tokens": settings.llm_max_tokens,
        "timeout": settings.llm_timeout,
        "max_retries": settings.llm_max_retries,
        "streaming": streaming,
    }

    if settings.llm_base_url:
        logger.info("Using OpenAI-compatible endpoint: %s", settings.llm_base_url)
        kwargs["base_url"] = settings.llm_base_url
        # vLLM doesn't need a real key; LangChain requires a non-empty value.
        kwargs["api_key"] = settings.openai_api_key or "EMPTY"
    else:
        kwargs["api_key"] = settings.openai_api_key

    return ChatOpenAI(**kwargs)


def llm_info() -> dict[str, Any]:
    return {
        "provider": "OPENAI_COMPATIBLE" if settings.llm_base_url else "OPENAI",
        "model": settings.llm_model_name,
        "temperature": settings.llm_temperature,
        "max_tokens": settings.llm_max_tokens,
    }
