"""
Local Chunk Store
------------------
File-backed store for development and single-machine deployments.

  - Chunk records  -> <store_dir>/chunks.jsonl  (one orjson line per chunk,
                      appended on insert, rewritten on delete)
  - Vector search  -> faiss.IndexFlatIP over L2-normalised vectors, so the
                      inner product is the cosine similarity.  The index is
                      rebuilt lazily on the first search after a write.

With store_dir=None nothing touches disk, which is what the tests use.
"""
from __future__ import annotations

import threading
from pathlib import Path
from typing import Optional

import faiss
import numpy as np
import orjson
from loguru import logger
from pydantic import ValidationError

from taxrag.errors import ChunkStoreError
from taxrag.schemas import DocumentChunk, RetrievedChunk
from taxrag.storage.base import ChunkStore

CHUNKS_FILE = "chunks.jsonl"


def _encode(chunk: DocumentChunk) -> bytes:
    return orjson.dumps(chunk.model_dump(mode="json")) + b"\n"


class LocalChunkStore(ChunkStore):

    name = "local"
    supports_vector_search = True

    def __init__(self, store_dir: Optional[str | Path] = None) -> None:
        super().__init__()
        self.store_dir = Path(store_dir) if store_dir is not None else None
        self._chunks: list[DocumentChunk] = []
        self._keys: set[tuple[str, int]] = set()
        self._index: Optional[tuple[faiss.IndexFlatIP, list[DocumentChunk], np.ndarray]] = None
        self._index_lock = threading.Lock()

    @property
    def chunks_path(self) -> Optional[Path]:
        return self.store_dir / CHUNKS_FILE if self.store_dir is not None else None

    # --- Lifecycle ------------------------------------------------------------

    def connect(self) -> None:
        """Load persisted chunks from disk (no-op for an in-memory store)."""
        path = self.chunks_path
        if path is None:
            return
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            loaded: list[DocumentChunk] = []
            if path.exists():
                with open(path, "rb") as f:
                    for line in f:
                        if line.strip():
                            loaded.append(DocumentChunk(**orjson.loads(line)))
        except (OSError, orjson.JSONDecodeError, ValidationError) as exc:
            raise ChunkStoreError(f"Cannot load {path}: {exc}", self.name) from exc

        self._reset(loaded)
        logger.info(f"[LocalChunkStore] Loaded {len(self._chunks)} chunks from {path}")

    # --- Writes ---------------------------------------------------------------

    def _write(self, chunk: DocumentChunk) -> None:
        path = self.chunks_path
        if path is not None:
            try:
                with open(path, "ab") as f:
                    f.write(_encode(chunk))
            except OSError as exc:
                raise ChunkStoreError(f"Cannot append to {path}: {exc}", self.name) from exc
        self._chunks.append(chunk)
        self._keys.add((chunk.source, chunk.chunk_index))
        self._index = None

    def _clear(self) -> None:
        self._rewrite([])
        self._reset([])

    def delete_source(self, source: str) -> int:
        kept = [c for c in self._chunks if c.source != source]
        removed = len(self._chunks) - len(kept)
        if removed:
            self._rewrite(kept)
            self._reset(kept)
        return removed

    def _contains(self, source: str, chunk_index: int) -> bool:
        return (source, chunk_index) in self._keys

    def _reset(self, chunks: list[DocumentChunk]) -> None:
        self._chunks = list(chunks)
        self._keys = {(c.source, c.chunk_index) for c in chunks}
        self.dimensions = chunks[0].dimensions if chunks else None
        self._index = None

    def _rewrite(self, chunks: list[DocumentChunk]) -> None:
        path = self.chunks_path
        if path is None:
            return
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            with open(path, "wb") as f:
                for chunk in chunks:
                    f.write(_encode(chunk))
        except OSError as exc:
            raise ChunkStoreError(f"Cannot rewrite {path}: {exc}", self.name) from exc

    # --- Reads ----------------------------------------------------------------

    def scan_all(self) -> list[DocumentChunk]:
        return list(self._chunks)

    def count(self) -> int:
        return len(self._chunks)

    def nearest_neighbors(
        self,
        vector: list[float],
        candidate_pool: int,
        limit: int,
    ) -> list[RetrievedChunk]:
        if limit < 1 or not self._chunks:
            return []

        index, rows, norms = self._ensure_index()
        query = np.asarray(vector, dtype=np.float32).reshape(1, -1)
        if query.shape[1] != index.d:
            raise ChunkStoreError(
                f"Query has {query.shape[1]} dimensions, index has {index.d}", self.name
            )

        query_norm = float(np.linalg.norm(query))
        k = min(max(candidate_pool, limit), index.ntotal)
        if query_norm == 0:
            # cosine is undefined for every row: all rank last, store order
            return [self._hit(rows[i], float("-inf")) for i in range(min(limit, len(rows)))]

        scores, ids = index.search(query / query_norm, k)
        hits = [
            self._hit(rows[idx], float(score) if norms[idx] > 0 else float("-inf"))
            for score, idx in zip(scores[0], ids[0])
            if idx >= 0
        ]
        hits.sort(key=lambda h: h.similarity, reverse=True)
        return hits[:limit]

    def _ensure_index(self) -> tuple[faiss.IndexFlatIP, list[DocumentChunk], np.ndarray]:
        with self._index_lock:
            if self._index is None:
                rows = list(self._chunks)
                matrix = np.asarray([c.embedding for c in rows], dtype=np.float32)
                norms = np.linalg.norm(matrix, axis=1)
                safe = np.where(norms == 0, 1, norms).reshape(-1, 1)
                index = faiss.IndexFlatIP(matrix.shape[1])
                index.add(np.ascontiguousarray(matrix / safe, dtype=np.float32))
                self._index = (index, rows, norms)
                logger.debug(f"[LocalChunkStore] FAISS index rebuilt | {index.ntotal} vectors")
            return self._index

    @staticmethod
    def _hit(chunk: DocumentChunk, similarity: float) -> RetrievedChunk:
        return RetrievedChunk(
            content=chunk.content,
            source=chunk.source,
            chunk_index=chunk.chunk_index,
            similarity=similarity,
        )
