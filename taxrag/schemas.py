"""
Core Pydantic schemas for the TaxRAG pipeline.

DocumentChunk is the only persisted record: it is created once during
ingestion and never mutated.  Everything else here is query-scoped or
describes an ingestion run.
"""
from __future__ import annotations

import math
from datetime import datetime, timezone
from enum import Enum
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


# --- Stored records ------------------------------------------------------------

class DocumentChunk(BaseModel):
    """
    One retrievable window of text from a source document.

    (source, chunk_index) identifies a chunk; chunk_index orders the chunks
    of one document.  The embedding's length must match every other chunk
    in the same store, which the store checks on insert.
    """

    model_config = ConfigDict(frozen=True)

    content: str
    embedding: list[float]
    source: str                         # e.g. "Nigeria Tax Act 2025.pdf"
    chunk_index: int = Field(ge=0)
    created_at: datetime = Field(default_factory=_utcnow)

    @field_validator("content", "source")
    @classmethod
    def _not_blank(cls, v: str) -> str:
        if not v.strip():
            raise ValueError("must not be blank")
        return v

    @field_validator("embedding")
    @classmethod
    def _finite_vector(cls, v: list[float]) -> list[float]:
        if not v:
            raise ValueError("embedding must not be empty")
        if not all(math.isfinite(x) for x in v):
            raise ValueError("embedding contains non-finite values")
        # a zero vector has no cosine similarity to anything
        if not any(v):
            raise ValueError("embedding must not be all zeros")
        return v

    @property
    def dimensions(self) -> int:
        return len(self.embedding)


# --- Query-scoped views ----------------------------------------------------------

class RetrievedChunk(BaseModel):
    """A stored chunk as seen by one query: content, provenance and score."""

    content: str
    source: str
    chunk_index: int = 0
    similarity: float
    citation_id: Optional[str] = None   # "SRC-<rank>", assigned after ranking


class SourceCitation(BaseModel):
    """One entry of the sources list returned with an answer."""

    source: str
    similarity: str                     # formatted to 4 decimals, e.g. "0.8731"


# --- Ingestion bookkeeping -------------------------------------------------------

class DocumentState(str, Enum):
    EXTRACTING = "extracting"
    CHUNKING = "chunking"
    EMBEDDING = "embedding"
    STORED = "stored"
    SKIPPED = "skipped"
    FAILED = "failed"


class DocumentOutcome(BaseModel):
    """Terminal result of ingesting one document."""

    source: str
    state: DocumentState
    characters: int = 0
    chunks_produced: int = 0
    chunks_stored: int = 0
    reason: str = ""


class IngestionReport(BaseModel):
    """Summary of one full-replace ingestion run."""

    started_at: datetime = Field(default_factory=_utcnow)
    completed_at: Optional[datetime] = None
    documents: list[DocumentOutcome] = Field(default_factory=list)
    total_chunks: int = 0

    def count(self, state: DocumentState) -> int:
        return sum(1 for d in self.documents if d.state == state)
