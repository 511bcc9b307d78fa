"""
MongoDB Chunk Store
--------------------
Stores chunks in the `documentchunks` collection with the field names the
existing deployment already uses (content, embedding, source, chunkIndex,
createdAt), so a corpus ingested earlier stays readable.

The indexed retrieval strategy runs an Atlas `$vectorSearch` aggregation
against the search index named by `vector_index`:

    {"$vectorSearch": {"index": "vector_index", "path": "embedding",
                       "queryVector": [...], "numCandidates": 50, "limit": 5}}

That index is created in Atlas, not here.  connect() only creates the
unique (source, chunkIndex) index.
"""
from __future__ import annotations

from typing import Any, Optional

from loguru import logger
from pymongo import ASCENDING, MongoClient
from pymongo.collection import Collection
from pymongo.errors import DuplicateKeyError, PyMongoError

from taxrag.errors import ChunkStoreError, InvalidChunkError
from taxrag.schemas import DocumentChunk, RetrievedChunk
from taxrag.storage.base import ChunkStore


def _to_document(chunk: DocumentChunk) -> dict[str, Any]:
    return {
        "content": chunk.content,
        "embedding": chunk.embedding,
        "source": chunk.source,
        "chunkIndex": chunk.chunk_index,
        "createdAt": chunk.created_at,
    }


def _from_document(doc: dict[str, Any]) -> DocumentChunk:
    data = {
        "content": doc["content"],
        "embedding": doc["embedding"],
        "source": doc["source"],
        "chunk_index": doc["chunkIndex"],
    }
    if doc.get("createdAt") is not None:
        data["created_at"] = doc["createdAt"]
    return DocumentChunk(**data)


class MongoChunkStore(ChunkStore):

    name = "mongodb"
    supports_vector_search = True

    def __init__(
        self,
        uri: Optional[str] = None,
        database: str = "taxrag",
        collection: str = "documentchunks",
        vector_index: str = "vector_index",
        server_selection_timeout_ms: int = 5000,
        client: Optional[MongoClient] = None,
    ) -> None:
        super().__init__()
        if client is None and not uri:
            raise ChunkStoreError("MONGO_URI is not set", self.name)
        self._client = (
            client if client is not None
            else MongoClient(uri, serverSelectionTimeoutMS=server_selection_timeout_ms)
        )
        self._owns_client = client is None
        self.vector_index = vector_index
        self.collection: Collection = self._client[database][collection]

    # --- Lifecycle ------------------------------------------------------------

    def connect(self) -> None:
        try:
            self._client.admin.command("ping")
            self.collection.create_index(
                [("source", ASCENDING), ("chunkIndex", ASCENDING)],
                unique=True,
                name="source_chunkIndex",
            )
            first = self.collection.find_one({}, {"embedding": 1})
        except PyMongoError as exc:
            raise ChunkStoreError(f"MongoDB connection failed: {exc}", self.name) from exc

        if first and first.get("embedding"):
            self.dimensions = len(first["embedding"])
        logger.info(
            f"[MongoChunkStore] Connected | {self.collection.full_name} | dim={self.dimensions}"
        )

    def close(self) -> None:
        if self._owns_client:
            self._client.close()

    # --- Writes ---------------------------------------------------------------

    def _write(self, chunk: DocumentChunk) -> None:
        try:
            self.collection.insert_one(_to_document(chunk))
        except DuplicateKeyError as exc:
            raise InvalidChunkError(
                f"{chunk.source}#{chunk.chunk_index} already stored", self.name
            ) from exc
        except PyMongoError as exc:
            raise ChunkStoreError(f"Insert failed: {exc}", self.name) from exc

    def _clear(self) -> None:
        try:
            self.collection.delete_many({})
        except PyMongoError as exc:
            raise ChunkStoreError(f"Clear failed: {exc}", self.name) from exc

    def delete_source(self, source: str) -> int:
        try:
            return self.collection.delete_many({"source": source}).deleted_count
        except PyMongoError as exc:
            raise ChunkStoreError(f"Delete of {source!r} failed: {exc}", self.name) from exc

    def _contains(self, source: str, chunk_index: int) -> bool:
        # The unique index rejects duplicates on insert; no extra round trip.
        return False

    # --- Reads ----------------------------------------------------------------

    def scan_all(self) -> list[DocumentChunk]:
        try:
            docs = list(self.collection.find({}).sort("_id", ASCENDING))
        except PyMongoError as exc:
            raise ChunkStoreError(f"Scan failed: {exc}", self.name) from exc
        try:
            return [_from_document(d) for d in docs]
        except (KeyError, TypeError, ValueError) as exc:
            raise ChunkStoreError(f"Malformed chunk record: {exc!r}", self.name) from exc

    def count(self) -> int:
        try:
            return self.collection.count_documents({})
        except PyMongoError as exc:
            raise ChunkStoreError(f"Count failed: {exc}", self.name) from exc

    def nearest_neighbors(
        self,
        vector: list[float],
        candidate_pool: int,
        limit: int,
    ) -> list[RetrievedChunk]:
        pipeline = [
            {
                "$vectorSearch": {
                    "index": self.vector_index,
                    "path": "embedding",
                    "queryVector": list(vector),
                    "numCandidates": max(candidate_pool, limit),
                    "limit": limit,
                }
            },
            {
                "$project": {
                    "content": 1,
                    "source": 1,
                    "chunkIndex": 1,
                    "score": {"$meta": "vectorSearchScore"},
                }
            },
        ]
        try:
            docs = list(self.collection.aggregate(pipeline))
        except PyMongoError as exc:
            raise ChunkStoreError(f"$vectorSearch failed: {exc}", self.name) from exc

        try:
            return [
                RetrievedChunk(
                    content=d["content"],
                    source=d["source"],
                    chunk_index=d.get("chunkIndex", 0),
                    similarity=float(d["score"]),
                )
                for d in docs
            ]
        except (KeyError, TypeError, ValueError) as exc:
            # ValidationError is a ValueError
            raise ChunkStoreError(f"Malformed search hit: {exc!r}", self.name) from exc
