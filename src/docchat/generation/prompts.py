"""Prompt templates and message assembly for grounded answering.

Message order for a regular query::

    system      strict answering policy
    assistant   "[1] <context text>"      one per non-empty context
    ...
    user        earlier question          replayed history, oldest first
    assistant   earlier answer
    ...
    user        live question

Greetings and acknowledgements skip retrieval context entirely.
"""

from __future__ import annotations

import re
from typing import TYPE_CHECKING

from langchain_core.messages import AIMessage, HumanMessage, SystemMessage

if TYPE_CHECKING:
    from langchain_core.messages import BaseMessage

    from docchat.conversation import ConversationMessage
    from docchat.retrieval.models import RetrievedContext

REFUSAL_MESSAGE = "Sorry, no relevant information is available in the provided context."

# ── 1. Strict grounded answering ──────────────────────────────────────

RAG_SYSTEM = f"""\
You are a precise assistant that answers questions using **only** the
context passages supplied in this conversation.

Rules:
1. Use only the numbered context passages. Do not rely on prior knowledge.
2. Cite every factual claim with the bracketed index of its passage,
   e.g. [1] or [2][3].
3. Earlier turns of the conversation are for continuity only; they are
   not a source of facts.
4. If the passages do not contain the answer, or no passages are
   supplied, reply with exactly this sentence and nothing else:
   "{REFUSAL_MESSAGE}"
5. Be concise and accurate.
"""

# ── 2. Small talk ─────────────────────────────────────────────────────

GREETING_SYSTEM = """\
You are a friendly assistant for a document question-answering service.
Reply briefly and politely to greetings or thanks, and invite the user to
ask a question about the uploaded documents.
"""

_GREETING_PATTERNS: tuple[re.Pattern[str], ...] = tuple(
    re.compile(p, re.IGNORECASE)
    for p in (
        r"^(hi|hello|hey|hiya|howdy|greetings)( there)?$",
        r"^good (morning|afternoon|evening|day)$",
        r"^(thanks|thank you|thx|ty)( so much| a lot)?$",
        r"^(ok|okay|cool|great|nice|got it|sounds good)$",
        r"^(bye|goodbye|see you|see ya)$",
        r"^how are you( doing)?$",
    )
)


def is_greeting(query: str) -> bool:
    """Return ``True`` for short small-talk inputs that need no context."""
    normalised = re.sub(r"[^\w\s]", "", query).strip()
    normalised = re.sub(r"\s+", " ", normalised)
    return any(p.match(normalised) for p in _GREETING_PATTERNS)


def format_context(index: int, context: RetrievedContext) -> str:
    """Render one passage with its 1-based citation index."""
    return f"[{index}] {context.text.strip()}"


def build_rag_messages(
    query: str,
    contexts: list[RetrievedContext],
    history: list[ConversationMessage] | None = None,
) -> list[BaseMessage]:
    """Assemble the message sequence for one query.

    Parameters
    ----------
    query:
        The live user question.
    contexts:
        Retrieved passages, best first.  Blank passages are skipped but
        keep their citation index so numbering stays aligned.
    history:
        Recent exchanges in chronological order.

    Returns
    -------
    list[BaseMessage]
        LangChain messages ready for ``.astream()``.
    """
    if is_greeting(query):
        return [SystemMessage(content=GREETING_SYSTEM), HumanMessage(content=query)]

    messages: list[BaseMessage] = [SystemMessage(content=RAG_SYSTEM)]

    for i, context in enumerate(contexts, 1):
        if context.text and context.text.strip():
            messages.append(AIMessage(content=format_context(i, context)))

    for exchange in history or []:
        messages.append(HumanMessage(content=exchange.query))
        messages.append(AIMessage(content=exchange.response))

    messages.append(HumanMessage(content=query))
    return messages
