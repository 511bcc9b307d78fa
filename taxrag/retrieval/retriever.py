"""
Retrievers
-----------
Two interchangeable strategies with the same output: RetrievedChunks, most
similar first, at most top_k long, each tagged SRC-1..SRC-n by rank.

  ExhaustiveRetriever -- scan every stored chunk and rank by cosine
                         similarity in-process.  Exact; cost grows with
                         the corpus.
  IndexedRetriever    -- hand the query vector to the store's own
                         nearest-neighbour search (Atlas $vectorSearch,
                         FAISS).  Candidate pool >= top_k.

An empty store yields an empty list.  Store failures become RetrievalError.
"""
from __future__ import annotations

from abc import ABC, abstractmethod

from langsmith import traceable
from loguru import logger

from taxrag.errors import ChunkStoreError, ConfigurationError, RetrievalError
from taxrag.retrieval.similarity import cosine_similarity, rank_score
from taxrag.schemas import RetrievedChunk
from taxrag.storage.base import ChunkStore
from taxrag.utils.helpers import format_similarity

DEFAULT_TOP_K = 5
DEFAULT_CANDIDATE_POOL = 50


def citation_id(rank: int) -> str:
    """1-based rank -> "SRC-<rank>"."""
    return f"SRC-{rank}"


def tag_citations(ranked: list[RetrievedChunk]) -> list[RetrievedChunk]:
    return [
        chunk.model_copy(update={"citation_id": citation_id(rank)})
        for rank, chunk in enumerate(ranked, start=1)
    ]


class Retriever(ABC):

    strategy: str = ""

    def __init__(self, store: ChunkStore, top_k: int = DEFAULT_TOP_K) -> None:
        if top_k < 1:
            raise ConfigurationError(f"top_k must be >= 1, got {top_k}")
        self.store = store
        self.top_k = top_k

    @traceable(name="retrieve", run_type="retriever")
    def retrieve(self, query_vector: list[float]) -> list[RetrievedChunk]:
        try:
            ranked = self._rank(query_vector)
        except ChunkStoreError as exc:
            raise RetrievalError(f"Retrieval failed: {exc}", exc.provider_name) from exc

        results = tag_citations(ranked[: self.top_k])
        if results:
            logger.info(
                f"[Retriever] {self.strategy} | {len(results)} chunk(s) | "
                f"top similarity: {format_similarity(results[0].similarity)}"
            )
        else:
            logger.info(f"[Retriever] {self.strategy} | no chunks in store")
        return results

    @abstractmethod
    def _rank(self, query_vector: list[float]) -> list[RetrievedChunk]:
        ...


class ExhaustiveRetriever(Retriever):
    """In-process cosine ranking over a full scan of the store."""

    strategy = "exhaustive"

    def _rank(self, query_vector: list[float]) -> list[RetrievedChunk]:
        chunks = self.store.scan_all()
        scored: list[RetrievedChunk] = []
        for chunk in chunks:
            try:
                similarity = cosine_similarity(query_vector, chunk.embedding)
            except ValueError as exc:
                raise RetrievalError(
                    f"{chunk.source}#{chunk.chunk_index}: {exc}", self.store.name
                ) from exc
            scored.append(
                RetrievedChunk(
                    content=chunk.content,
                    source=chunk.source,
                    chunk_index=chunk.chunk_index,
                    similarity=rank_score(similarity),
                )
            )
        # sorted() is stable: equal scores keep store order
        return sorted(scored, key=lambda c: c.similarity, reverse=True)


class IndexedRetriever(Retriever):
    """Delegates ranking to the store's native nearest-neighbour search."""

    strategy = "indexed"

    def __init__(
        self,
        store: ChunkStore,
        top_k: int = DEFAULT_TOP_K,
        candidate_pool: int = DEFAULT_CANDIDATE_POOL,
    ) -> None:
        super().__init__(store, top_k)
        if not store.supports_vector_search:
            raise ConfigurationError(
                f"{store.__class__.__name__} has no vector search; use the exhaustive strategy"
            )
        if candidate_pool < top_k:
            raise ConfigurationError(
                f"candidate_pool ({candidate_pool}) must be >= top_k ({top_k})"
            )
        self.candidate_pool = candidate_pool

    def _rank(self, query_vector: list[float]) -> list[RetrievedChunk]:
        return self.store.nearest_neighbors(
            query_vector,
            candidate_pool=self.candidate_pool,
            limit=self.top_k,
        )


def build_retriever(
    store: ChunkStore,
    strategy: str = "exhaustive",
    top_k: int = DEFAULT_TOP_K,
    candidate_pool: int = DEFAULT_CANDIDATE_POOL,
) -> Retriever:
    if strategy == "exhaustive":
        return ExhaustiveRetriever(store, top_k=top_k)
    if strategy == "indexed":
        return IndexedRetriever(store, top_k=top_k, candidate_pool=candidate_pool)
    raise ConfigurationError(f"Unknown retrieval strategy {strategy!r}")
