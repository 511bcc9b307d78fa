"""Shared pytest fixtures for the TaxRAG test suite."""

from __future__ import annotations

from pathlib import Path
from typing import Any, Optional

import fitz
import pytest

from taxrag.embedding.embedder import Embedder
from taxrag.errors import EmbeddingServiceError, GenerationServiceError
from taxrag.generation.generator import Generator
from taxrag.schemas import DocumentChunk
from taxrag.storage.local_store import LocalChunkStore

# ---------------------------------------------------------------------------
# Fakes
# ---------------------------------------------------------------------------


class FakeEmbedder(Embedder):
    """Returns a fixed vector per text; unknown texts get `default`.

    Texts listed in `fail_on` raise EmbeddingServiceError.
    """

    provider_name = "fake"

    def __init__(
        self,
        vectors: Optional[dict[str, list[float]]] = None,
        default: Optional[list[float]] = None,
        fail_on: tuple[str, ...] = (),
    ) -> None:
        super().__init__(model="fake-embed")
        self.vectors = vectors or {}
        self.default = default if default is not None else [1.0, 0.0]
        self.fail_on = fail_on
        self.calls: list[str] = []

    def _request(self, text: str) -> Any:
        self.calls.append(text)
        if text in self.fail_on:
            raise EmbeddingServiceError("quota exceeded", self.provider_name)
        return self.vectors.get(text, self.default)


class FakeGenerator(Generator):
    """Records every prompt and answers with a canned string (or raises)."""

    provider_name = "fake"

    def __init__(self, answer: str = "Answer.", error: Optional[Exception] = None) -> None:
        super().__init__(model="fake-llm")
        self.answer = answer
        self.error = error
        self.prompts: list[str] = []

    def _complete(self, prompt: str) -> str:
        self.prompts.append(prompt)
        if self.error is not None:
            raise self.error
        return self.answer


def make_chunk(
    source: str = "Nigeria Tax Act 2025.pdf",
    chunk_index: int = 0,
    embedding: Optional[list[float]] = None,
    content: Optional[str] = None,
) -> DocumentChunk:
    return DocumentChunk(
        content=content or f"{source} chunk {chunk_index}",
        embedding=embedding if embedding is not None else [1.0, 0.0],
        source=source,
        chunk_index=chunk_index,
    )


def write_pdf(path: Path, pages: list[str]) -> Path:
    """Write a small text PDF with one page per entry ("" leaves a blank page)."""
    doc = fitz.open()
    for text in pages:
        page = doc.new_page()
        if text:
            page.insert_text((72, 72), text)
    doc.save(str(path))
    doc.close()
    return path


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def fake_embedder() -> FakeEmbedder:
    return FakeEmbedder()


@pytest.fixture
def fake_generator() -> FakeGenerator:
    return FakeGenerator()


@pytest.fixture
def failing_generator() -> FakeGenerator:
    return FakeGenerator(
        error=GenerationServiceError(
            "Gemini API error: 503", "gemini", status_code=503, body='{"error": "overloaded"}'
        )
    )


@pytest.fixture
def memory_store() -> LocalChunkStore:
    """In-memory store; nothing touches disk."""
    store = LocalChunkStore()
    store.connect()
    return store


@pytest.fixture
def disk_store(tmp_path: Path) -> LocalChunkStore:
    store = LocalChunkStore(tmp_path / "store")
    store.connect()
    return store
