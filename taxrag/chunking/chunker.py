"""
TaxRAG - Word-Window Chunker
------------------------------
Statutes are dense and cross-referential, so chunks are plain fixed-size
word windows with no overlap: every word of a document lands in exactly
one chunk and the chunks, joined with single spaces, give back the
whitespace-normalised document.

    chunker = WordChunker(chunk_size=500)
    chunker.split("Section 1 ...")   -> ["Section 1 ...", ...]

An empty or all-whitespace document yields no chunks.  That is not an
error here; the ingestion orchestrator logs it and skips the document.
"""
from __future__ import annotations

from loguru import logger

DEFAULT_CHUNK_SIZE = 500  # words


def split_into_chunks(text: str, chunk_size: int = DEFAULT_CHUNK_SIZE) -> list[str]:
    """
    Split text on whitespace and group consecutive words into windows of at
    most chunk_size words.

    Raises:
        ValueError: chunk_size < 1.
    """
    if chunk_size < 1:
        raise ValueError(f"chunk_size must be >= 1, got {chunk_size}")

    words = text.split()
    return [
        " ".join(words[i: i + chunk_size])
        for i in range(0, len(words), chunk_size)
    ]


class WordChunker:
    """Fixed-size word windows, configured once and reused across documents."""

    def __init__(self, chunk_size: int = DEFAULT_CHUNK_SIZE) -> None:
        if chunk_size < 1:
            raise ValueError(f"chunk_size must be >= 1, got {chunk_size}")
        self.chunk_size = chunk_size

    def split(self, text: str) -> list[str]:
        chunks = split_into_chunks(text, self.chunk_size)
        logger.debug(
            f"[Chunker] {len(text)} chars -> {len(chunks)} chunk(s) "
            f"of <= {self.chunk_size} words"
        )
        return chunks
