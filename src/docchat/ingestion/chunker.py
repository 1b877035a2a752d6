"""Sentence-aware text chunking.

Text is split into sentence-like units (runs ending in ``.``, ``!`` or
``?``) which are packed greedily into chunks of at most ``size``
characters.  Each new chunk is seeded with the trailing words of the
previous one so neighbouring chunks share some context.
"""

from __future__ import annotations

import re

from pydantic import BaseModel, ConfigDict

from docchat.config import settings

_SENTENCE_RE = re.compile(r"[^.!?]+[.!?]+")
_WHITESPACE_RE = re.compile(r"\s+")

# Characters of overlap that translate into one word of carried-over context.
_CHARS_PER_OVERLAP_WORD = 10


class Chunk(BaseModel):
    """A bounded contiguous slice of source text prepared for embedding."""

    model_config = ConfigDict(frozen=True)

    text: str
    index: int
    total_in_source: int


def clean_text(text: str) -> str:
    """Collapse every whitespace run into a single space and strip."""
    if not text:
        return ""
    return _WHITESPACE_RE.sub(" ", text).strip()


def split_sentences(text: str) -> list[str]:
    """Split *text* into stripped sentence units.

    Text after the last terminator is kept as a final unit.  When no
    terminator is present the whole text is one unit.
    """
    units: list[str] = []
    end = 0
    for match in _SENTENCE_RE.finditer(text):
        units.append(match.group())
        end = match.end()
    if end < len(text):
        units.append(text[end:])
    return [u.strip() for u in units if u.strip()]


def chunk_text(
    text: str,
    size: int | None = None,
    overlap: int | None = None,
) -> list[Chunk]:
    """Split *text* into overlapping, sentence-aligned chunks.

    Parameters
    ----------
    text:
        Raw source text.
    size:
        Maximum characters per chunk.  A single sentence longer than this
        is emitted whole as its own oversized chunk.
        A chunk seeded with overlap words may also exceed it, but then holds
        exactly one new sentence after the seed.
    overlap:
        Overlap budget in characters; ``overlap // 10`` trailing words of
        each emitted chunk seed the next one.

    Returns
    -------
    list[Chunk]
        Empty when *text* is empty or whitespace-only.
    """
    size = size or settings.chunk_size
    overlap = settings.chunk_overlap if overlap is None else overlap

    if not text or not text.strip():
        return []

    overlap_words = overlap // _CHARS_PER_OVERLAP_WORD
    pieces: list[str] = []
    current = ""

    for unit in split_sentences(text):
        if not current:
            current = unit
        elif len(current) + 1 + len(unit) <= size:
            current = f"{current} {unit}"
        else:
            pieces.append(current)
            tail = current.split(" ")[-overlap_words:] if overlap_words else []
            current = " ".join([*tail, unit])

    if current:
        pieces.append(current)

    total = len(pieces)
    return [Chunk(text=piece, index=i, total_in_source=total) for i, piece in enumerate(pieces)]
