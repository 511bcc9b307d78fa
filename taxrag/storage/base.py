"""
Chunk Store interface
----------------------
The store is the only shared state between ingestion (single writer) and
queries (many readers).  Backends implement the underscore methods; the
public insert() is shared so every backend enforces the same record rules:

  - one embedding dimensionality per store
  - (source, chunk_index) is unique

nearest_neighbors() is optional.  Backends that support server-side
ranking set supports_vector_search = True and override it.
"""
from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Optional

from loguru import logger

from taxrag.errors import ChunkStoreError, InvalidChunkError
from taxrag.schemas import DocumentChunk, RetrievedChunk


class ChunkStore(ABC):

    name: str = "store"
    supports_vector_search: bool = False

    def __init__(self) -> None:
        self.dimensions: Optional[int] = None

    # --- Lifecycle ------------------------------------------------------------

    def connect(self) -> None:
        """Open connections / load persisted data. Raises ChunkStoreError."""

    def close(self) -> None:
        pass

    # --- Writes ---------------------------------------------------------------

    def insert(self, chunk: DocumentChunk) -> None:
        """
        Validate and persist one chunk.

        Raises:
            InvalidChunkError: wrong dimensionality or duplicate position.
            ChunkStoreError:   the backend failed.
        """
        if self.dimensions is None:
            self.dimensions = chunk.dimensions
        elif chunk.dimensions != self.dimensions:
            raise InvalidChunkError(
                f"{chunk.source}#{chunk.chunk_index}: embedding has {chunk.dimensions} "
                f"dimensions, store holds {self.dimensions}",
                self.name,
            )
        if self._contains(chunk.source, chunk.chunk_index):
            raise InvalidChunkError(
                f"{chunk.source}#{chunk.chunk_index} already stored", self.name
            )
        self._write(chunk)

    def delete_all(self) -> None:
        """Remove every chunk; the next insert fixes a new dimensionality."""
        self._clear()
        self.dimensions = None
        logger.info(f"[{self.__class__.__name__}] Cleared all chunks")

    @abstractmethod
    def delete_source(self, source: str) -> int:
        """Remove all chunks of one document; returns how many were removed."""

    # --- Reads ----------------------------------------------------------------

    @abstractmethod
    def scan_all(self) -> list[DocumentChunk]:
        """Every stored chunk, in insertion order."""

    @abstractmethod
    def count(self) -> int:
        ...

    def nearest_neighbors(
        self,
        vector: list[float],
        candidate_pool: int,
        limit: int,
    ) -> list[RetrievedChunk]:
        """Store-ranked results, most similar first, at most `limit` long."""
        raise ChunkStoreError(
            f"{self.__class__.__name__} does not support vector search", self.name
        )

    # --- Backend hooks ----------------------------------------------------------

    @abstractmethod
    def _write(self, chunk: DocumentChunk) -> None:
        ...

    @abstractmethod
    def _clear(self) -> None:
        ...

    @abstractmethod
    def _contains(self, source: str, chunk_index: int) -> bool:
        ...
