"""Unit tests for the chunker module."""

import re

import pytest

from docchat.ingestion.chunker import Chunk, chunk_text, clean_text, split_sentences


def _sentences(n: int, words: int = 8) -> str:
    return " ".join(
        f"Sentence {i} " + " ".join(f"word{j}" for j in range(words)) + "." for i in range(n)
    )


@pytest.mark.parametrize("text", ["", "   ", "\n\t  \n"])
def test_empty_or_blank_input_returns_no_chunks(text: str) -> None:
    assert chunk_text(text, 100, 20) == []


def test_short_text_is_single_chunk() -> None:
    chunks = chunk_text("Hello world. How are you?", size=500, overlap=50)
    assert len(chunks) == 1
    assert chunks[0] == Chunk(text="Hello world. How are you?", index=0, total_in_source=1)


def test_text_without_terminators_is_one_unit() -> None:
    chunks = chunk_text("no punctuation at all here", size=500, overlap=50)
    assert [c.text for c in chunks] == ["no punctuation at all here"]


def test_chunks_respect_size_limit() -> None:
    text = _sentences(40)
    chunks = chunk_text(text, size=200, overlap=0)
    assert len(chunks) > 1
    assert all(len(c.text) <= 200 for c in chunks)


def test_chunk_indices_and_totals() -> None:
    chunks = chunk_text(_sentences(30), size=150, overlap=20)
    total = len(chunks)
    assert [c.index for c in chunks] == list(range(total))
    assert all(c.total_in_source == total for c in chunks)


def test_oversized_sentence_is_kept_whole() -> None:
    long_sentence = "A" * 300 + "."
    text = f"Short one. {long_sentence} Another short one."
    chunks = chunk_text(text, size=100, overlap=0)
    assert long_sentence in [c.text for c in chunks]
    assert [c.text for c in chunks] == ["Short one.", long_sentence, "Another short one."]


def test_overlap_carries_trailing_words() -> None:
    text = "alpha beta gamma delta. epsilon zeta eta theta."
    chunks = chunk_text(text, size=30, overlap=20)  # 20 // 10 == 2 words
    assert chunks[0].text == "alpha beta gamma delta."
    assert chunks[1].text == "gamma delta. epsilon zeta eta theta."


def test_overlap_below_ten_means_no_overlap() -> None:
    text = "alpha beta gamma delta. epsilon zeta eta theta."
    chunks = chunk_text(text, size=30, overlap=9)
    assert [c.text for c in chunks] == ["alpha beta gamma delta.", "epsilon zeta eta theta."]


def test_no_sentence_is_dropped() -> None:
    text = _sentences(25) + " trailing fragment without terminator"
    chunks = chunk_text(text, size=120, overlap=30)
    joined = " ".join(c.text for c in chunks)
    for sentence in split_sentences(text):
        assert sentence in joined


def test_only_single_sentence_chunks_may_exceed_size() -> None:
    text = _sentences(10) + " " + "B" * 250 + ". " + _sentences(5)
    size = 120
    for chunk in chunk_text(text, size=size, overlap=0):
        if len(chunk.text) > size:
            assert len(re.findall(r"[.!?]", chunk.text)) == 1


def test_split_sentences_handles_mixed_terminators() -> None:
    assert split_sentences("Wait! Really? Yes. ok") == ["Wait!", "Really?", "Yes.", "ok"]


def test_clean_text_collapses_whitespace() -> None:
    assert clean_text("  a \n\n b\t\tc  ") == "a b c"
    assert clean_text("") == ""


def test_chunk_is_immutable() -> None:
    chunk = chunk_text("One sentence.", 100, 0)[0]
    with pytest.raises(Exception):
        chunk.text = "changed"  # type: ignore[misc]


def test_overlap_seed_may_exceed_size() -> None:
    text = "One two three. Four five six seven eight nine ten."
    chunks = chunk_text(text, size=30, overlap=20)
    assert [c.text for c in chunks] == [
        "One two three.",
        "two three. Four five six seven eight nine ten.",
    ]


def test_oversized_chunks_are_one_sentence_after_overlap_tail() -> None:
    text = _sentences(6, words=3) + " " + "B" * 150 + ". " + _sentences(6, words=12)
    size, overlap = 80, 30
    tail_words = overlap // 10
    chunks = chunk_text(text, size=size, overlap=overlap)
    for chunk in chunks[1:]:
        if len(chunk.text) > size:
            body = chunk.text.split(" ", tail_words)[-1]
            assert len(split_sentences(body)) == 1
