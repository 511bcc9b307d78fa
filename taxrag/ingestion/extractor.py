"""
PDF Text Extractor
-------------------
Reads a PDF with PyMuPDF (fitz) and returns its text page by page, one
newline between pages.

Scanned PDFs without a text layer come back as an empty string; that is
an expected input and the ingestion orchestrator skips such documents.
Files that cannot be opened (corrupt, password-protected) or whose pages
cannot be read raise ExtractionError.
"""
from __future__ import annotations

from pathlib import Path

import fitz  # PyMuPDF
from loguru import logger

from taxrag.errors import ExtractionError


class PdfTextExtractor:
    """Stateless; one instance serves a whole ingestion run."""

    def extract(self, path: str | Path) -> str:
        path = Path(path)
        try:
            doc = fitz.open(path)
        except (fitz.FileDataError, FileNotFoundError, RuntimeError) as exc:
            raise ExtractionError(f"Cannot open {path.name}: {exc}", "pymupdf") from exc

        try:
            if doc.needs_pass:
                raise ExtractionError(f"{path.name} is password-protected", "pymupdf")
            try:
                pages = [page.get_text("text") for page in doc]
            except Exception as exc:
                # damaged page streams surface here, after open() succeeded
                raise ExtractionError(f"Cannot read {path.name}: {exc}", "pymupdf") from exc
        finally:
            doc.close()

        text = "\n".join(p.strip() for p in pages).strip()
        logger.debug(f"[Extractor] {path.name} | {len(pages)} page(s) | {len(text)} chars")
        return text
