"""
Provider factory
-----------------
Builds the external-service clients and the store from Settings once at
process start.  Orchestrators receive them as constructor arguments; no
module keeps a client of its own.
"""
from __future__ import annotations

from typing import Optional

from taxrag.chunking.chunker import WordChunker
from taxrag.config import Settings
from taxrag.embedding.embedder import Embedder, GeminiEmbedder, OpenAIEmbedder
from taxrag.errors import ConfigurationError
from taxrag.generation.generator import (
    AnthropicGenerator,
    GeminiGenerator,
    Generator,
    OpenAIGenerator,
)
from taxrag.ingestion.pipeline import IngestionPipeline, ProgressCallback
from taxrag.retrieval.retriever import build_retriever
from taxrag.serving.pipeline import QueryPipeline
from taxrag.storage.base import ChunkStore
from taxrag.storage.local_store import LocalChunkStore
from taxrag.storage.mongo_store import MongoChunkStore


def _require(value: Optional[str], env_name: str) -> str:
    if not value:
        raise ConfigurationError(f"{env_name} is not set")
    return value


def make_embedder(settings: Settings) -> Embedder:
    cfg, creds = settings.embedding, settings.credentials
    if cfg.provider == "gemini":
        return GeminiEmbedder(
            api_key=_require(creds.gemini_api_key, "GEMINI_API_KEY"),
            model=cfg.model,
            timeout_seconds=cfg.timeout_seconds,
            max_attempts=cfg.max_attempts,
        )
    return OpenAIEmbedder(
        api_key=_require(creds.openai_api_key, "OPENAI_API_KEY"),
        model=cfg.model,
        timeout_seconds=cfg.timeout_seconds,
        max_attempts=cfg.max_attempts,
    )


def make_generator(settings: Settings) -> Generator:
    cfg, creds = settings.generation, settings.credentials
    common = dict(
        model=cfg.model,
        max_tokens=cfg.max_tokens,
        temperature=cfg.temperature,
        timeout_seconds=cfg.timeout_seconds,
    )
    if cfg.provider == "gemini":
        return GeminiGenerator(api_key=_require(creds.gemini_api_key, "GEMINI_API_KEY"), **common)
    if cfg.provider == "openai":
        return OpenAIGenerator(api_key=_require(creds.openai_api_key, "OPENAI_API_KEY"), **common)
    return AnthropicGenerator(
        api_key=_require(creds.anthropic_api_key, "ANTHROPIC_API_KEY"), **common
    )


def make_store(settings: Settings) -> ChunkStore:
    """Construct and connect the configured store. Raises ChunkStoreError."""
    cfg = settings.store
    if cfg.backend == "mongodb":
        store: ChunkStore = MongoChunkStore(
            uri=_require(cfg.mongo_uri, "MONGO_URI"),
            database=cfg.database,
            collection=cfg.collection,
            vector_index=cfg.vector_index,
        )
    else:
        store = LocalChunkStore(cfg.local_dir)
    store.connect()
    return store


def build_query_pipeline(settings: Settings, store: ChunkStore) -> QueryPipeline:
    retriever = build_retriever(
        store,
        strategy=settings.retrieval.strategy,
        top_k=settings.retrieval.top_k,
        candidate_pool=settings.retrieval.candidate_pool,
    )
    return QueryPipeline(
        embedder=make_embedder(settings),
        retriever=retriever,
        generator=make_generator(settings),
    )


def build_ingestion_pipeline(
    settings: Settings,
    store: ChunkStore,
    on_progress: Optional[ProgressCallback] = None,
) -> IngestionPipeline:
    return IngestionPipeline(
        store=store,
        embedder=make_embedder(settings),
        chunker=WordChunker(settings.chunking.chunk_size),
        delay_seconds=settings.ingestion.delay_seconds,
        on_progress=on_progress,
    )
