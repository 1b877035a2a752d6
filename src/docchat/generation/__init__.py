"""
Generation — prompt assembly and the streaming chat model.

Public API
----------
- :func:`build_rag_messages` — role-tagged messages for one query.
- :func:`get_llm` — configured LangChain chat model.
- :data:`REFUSAL_MESSAGE` — the fixed "no answer in context" reply.
"""

from docchat.generation.prompts import REFUSAL_MESSAGE, build_rag_messages, is_greeting

__all__ = ["REFUSAL_MESSAGE", "build_rag_messages", "get_llm", "is_greeting"]


def __getattr__(name: str):  # noqa: ANN001
    """Lazy-import get_llm so prompt users don't need langchain_openai."""
    if name == "get_llm":
        from docchat.generation.llm import get_llm

        return get_llm
    raise AttributeError(f"module {__name__!r} has no attribute {name!r}")
