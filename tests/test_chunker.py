"""Unit tests for the word-window chunker."""

from __future__ import annotations

import pytest

from taxrag.chunking.chunker import DEFAULT_CHUNK_SIZE, WordChunker, split_into_chunks


class TestSplitIntoChunks:

    def test_exact_multiple_of_chunk_size(self) -> None:
        text = " ".join(f"w{i}" for i in range(1000))
        chunks = split_into_chunks(text, 500)

        assert len(chunks) == 2
        assert all(len(c.split()) == 500 for c in chunks)

    def test_remainder_goes_to_last_chunk(self) -> None:
        text = " ".join(f"w{i}" for i in range(1001))
        chunks = split_into_chunks(text, 500)

        assert [len(c.split()) for c in chunks] == [500, 500, 1]
        assert chunks[-1] == "w1000"

    def test_whitespace_is_normalised(self) -> None:
        chunks = split_into_chunks("  Section 1.\n\n\tTax   is  due \n", 3)
        assert chunks == ["Section 1. Tax", "is due"]

    def test_concatenation_reproduces_words(self) -> None:
        text = "Value Added Tax\nshall be charged\n\n at 7.5 percent on supplies"
        chunks = split_into_chunks(text, 4)
        assert " ".join(chunks).split() == text.split()

    @pytest.mark.parametrize("text", ["", "   ", "\n\t\n"])
    def test_empty_text_yields_no_chunks(self, text: str) -> None:
        assert split_into_chunks(text, 500) == []

    def test_single_word(self) -> None:
        assert split_into_chunks("Tax", 500) == ["Tax"]

    def test_invalid_chunk_size(self) -> None:
        with pytest.raises(ValueError):
            split_into_chunks("a b c", 0)


class TestWordChunker:

    def test_default_size(self) -> None:
        assert WordChunker().chunk_size == DEFAULT_CHUNK_SIZE == 500

    def test_split_uses_configured_size(self) -> None:
        assert WordChunker(2).split("a b c d e") == ["a b", "c d", "e"]

    def test_rejects_non_positive_size(self) -> None:
        with pytest.raises(ValueError):
            WordChunker(-1)
