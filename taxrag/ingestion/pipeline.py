"""
Ingestion Pipeline
-------------------
Full-replace batch ingestion: clear the store, then for each PDF

    extracting -> chunking -> embedding(0..n-1) -> stored
         |            |              |
         v            v              v
      skipped      skipped         failed

  - no text (scanned / image-only PDF) or unreadable file -> skipped
  - text but zero chunks                                  -> skipped
  - embedding fails at chunk i  -> remaining chunks abandoned, nothing from
                                   this document is committed       -> failed
  - a store write fails mid-commit -> the document's rows are removed -> failed
  - same file name as an earlier document in the run      -> skipped

Embedded chunks are buffered per document and only written once every
chunk has a vector, so a half-embedded document never looks complete.
Embedding calls are paced by a fixed delay; it does not adapt to
throttling.

Only a store failure while clearing (i.e. an unreachable store at the
start of the run) aborts the batch.
"""
from __future__ import annotations

import time
from datetime import datetime, timezone
from pathlib import Path
from typing import Callable, Optional, Sequence

from loguru import logger

from taxrag.chunking.chunker import WordChunker
from taxrag.embedding.embedder import Embedder
from taxrag.errors import ChunkStoreError, EmbeddingServiceError, ExtractionError
from taxrag.ingestion.extractor import PdfTextExtractor
from taxrag.schemas import DocumentChunk, DocumentOutcome, DocumentState, IngestionReport
from taxrag.storage.base import ChunkStore

DEFAULT_DELAY_SECONDS = 0.1

ProgressCallback = Callable[[str, int, int], None]


def discover_documents(pdf_dir: str | Path) -> list[Path]:
    """
    All *.pdf files (any case) directly inside pdf_dir, sorted by name.
    A missing folder is created and yields no documents.
    """
    folder = Path(pdf_dir)
    if not folder.exists():
        folder.mkdir(parents=True)
        logger.warning(f"[Ingestion] Created {folder}/ - add PDF files there and re-run")
        return []
    return sorted(
        (p for p in folder.iterdir() if p.is_file() and p.suffix.lower() == ".pdf"),
        key=lambda p: p.name,
    )


class IngestionPipeline:

    def __init__(
        self,
        store: ChunkStore,
        embedder: Embedder,
        extractor: Optional[PdfTextExtractor] = None,
        chunker: Optional[WordChunker] = None,
        delay_seconds: float = DEFAULT_DELAY_SECONDS,
        sleep: Callable[[float], None] = time.sleep,
        on_progress: Optional[ProgressCallback] = None,
    ) -> None:
        self.store = store
        self.embedder = embedder
        self.extractor = extractor or PdfTextExtractor()
        self.chunker = chunker or WordChunker()
        self.delay_seconds = delay_seconds
        self._sleep = sleep
        self._on_progress = on_progress

    def run(self, paths: Sequence[str | Path]) -> IngestionReport:
        """
        Replace the store's contents with the given documents.

        Raises:
            ChunkStoreError: the store could not be cleared.
        """
        report = IngestionReport()
        logger.info(f"[Ingestion] Starting run | {len(paths)} document(s)")

        self.store.delete_all()

        seen: set[str] = set()
        for path in paths:
            path = Path(path)
            if path.name in seen:
                # rows are keyed by file name; a second copy would overwrite or roll back the first
                logger.warning(f"[Ingestion] {path}: duplicate source name {path.name!r}, skipping")
                report.documents.append(
                    DocumentOutcome(
                        source=path.name,
                        state=DocumentState.SKIPPED,
                        reason=f"duplicate source name: {path}",
                    )
                )
                continue
            seen.add(path.name)
            report.documents.append(self.ingest_document(path))

        report.total_chunks = self.store.count()
        report.completed_at = datetime.now(timezone.utc)
        logger.info(
            f"[Ingestion] Done | stored={report.count(DocumentState.STORED)} "
            f"skipped={report.count(DocumentState.SKIPPED)} "
            f"failed={report.count(DocumentState.FAILED)} | "
            f"total chunks in store: {report.total_chunks}"
        )
        return report

    def ingest_document(self, path: Path) -> DocumentOutcome:
        source = path.name
        logger.info(f"[Ingestion] Processing: {source}")

        # -- extracting ------------------------------------------------------------
        self._enter(source, DocumentState.EXTRACTING)
        try:
            text = self.extractor.extract(path)
        except ExtractionError as exc:
            logger.warning(f"[Ingestion] {source}: extraction failed, skipping | {exc}")
            return DocumentOutcome(source=source, state=DocumentState.SKIPPED, reason=str(exc))

        if not text:
            logger.warning(
                f"[Ingestion] No text extracted from {source} - "
                "it might be scanned images or encrypted"
            )
            return DocumentOutcome(
                source=source, state=DocumentState.SKIPPED, reason="no text extracted"
            )
        logger.info(f"[Ingestion] {source}: extracted {len(text)} characters")

        # -- chunking --------------------------------------------------------------
        self._enter(source, DocumentState.CHUNKING)
        contents = self.chunker.split(text)
        if not contents:
            logger.warning(f"[Ingestion] No chunks created from {source}")
            return DocumentOutcome(
                source=source,
                state=DocumentState.SKIPPED,
                characters=len(text),
                reason="no chunks produced",
            )
        logger.info(f"[Ingestion] {source}: created {len(contents)} chunks")

        # -- embedding(i) ------------------------------------------------------------
        self._enter(source, DocumentState.EMBEDDING)
        records: list[DocumentChunk] = []
        for i, content in enumerate(contents):
            try:
                vector = self.embedder.embed(content)
            except EmbeddingServiceError as exc:
                logger.error(
                    f"[Ingestion] {source}: embedding failed at chunk {i + 1}/{len(contents)}, "
                    f"document abandoned | {exc}"
                )
                return DocumentOutcome(
                    source=source,
                    state=DocumentState.FAILED,
                    characters=len(text),
                    chunks_produced=len(contents),
                    reason=f"embedding failed at chunk {i}: {exc}",
                )
            records.append(
                DocumentChunk(content=content, embedding=vector, source=source, chunk_index=i)
            )
            if self._on_progress:
                self._on_progress(source, i + 1, len(contents))
            self._sleep(self.delay_seconds)

        # -- stored --------------------------------------------------------------------
        try:
            for record in records:
                self.store.insert(record)
        except ChunkStoreError as exc:
            logger.error(f"[Ingestion] {source}: store write failed, rolling back | {exc}")
            self._rollback(source)
            return DocumentOutcome(
                source=source,
                state=DocumentState.FAILED,
                characters=len(text),
                chunks_produced=len(contents),
                reason=f"store write failed: {exc}",
            )

        self._enter(source, DocumentState.STORED)
        logger.info(f"[Ingestion] Completed: {source} | {len(records)} chunks stored")
        return DocumentOutcome(
            source=source,
            state=DocumentState.STORED,
            characters=len(text),
            chunks_produced=len(contents),
            chunks_stored=len(records),
        )

    def _rollback(self, source: str) -> None:
        try:
            removed = self.store.delete_source(source)
            logger.info(f"[Ingestion] {source}: removed {removed} partially stored chunk(s)")
        except ChunkStoreError as exc:
            logger.error(f"[Ingestion] {source}: rollback failed, store may hold partial rows | {exc}")

    @staticmethod
    def _enter(source: str, state: DocumentState) -> None:
        logger.debug(f"[Ingestion] {source} -> {state.value}")
