"""Tests for PDF text extraction with PyMuPDF."""

from __future__ import annotations

from pathlib import Path

import fitz
import pytest

from conftest import write_pdf
from taxrag.errors import ExtractionError
from taxrag.ingestion.extractor import PdfTextExtractor


class TestPdfTextExtractor:

    def test_pages_joined_in_order(self, tmp_path: Path) -> None:
        path = write_pdf(tmp_path / "Act.pdf", ["Part I Interpretation", "Part II Charge to tax"])

        text = PdfTextExtractor().extract(path)

        assert "Part I Interpretation" in text
        assert "Part II Charge to tax" in text
        assert text.index("Part I") < text.index("Part II")

    def test_image_only_pdf_yields_empty_string(self, tmp_path: Path) -> None:
        path = write_pdf(tmp_path / "Scanned.pdf", ["", ""])
        assert PdfTextExtractor().extract(path) == ""

    def test_corrupt_file_raises(self, tmp_path: Path) -> None:
        path = tmp_path / "Broken.pdf"
        path.write_bytes(b"this file is not a pdf at all")

        with pytest.raises(ExtractionError):
            PdfTextExtractor().extract(path)

    def test_missing_file_raises(self, tmp_path: Path) -> None:
        with pytest.raises(ExtractionError):
            PdfTextExtractor().extract(tmp_path / "nope.pdf")

    def test_password_protected_raises(self, tmp_path: Path) -> None:
        doc = fitz.open()
        doc.new_page().insert_text((72, 72), "secret schedule")
        path = tmp_path / "Locked.pdf"
        doc.save(
            str(path),
            encryption=fitz.PDF_ENCRYPT_AES_256,
            owner_pw="owner",
            user_pw="user",
        )
        doc.close()

        with pytest.raises(ExtractionError, match="password"):
            PdfTextExtractor().extract(path)

    def test_page_read_error_raises(self, tmp_path: Path, monkeypatch) -> None:
        path = write_pdf(tmp_path / "Damaged.pdf", ["Section 1", "Section 2"])

        def broken_get_text(self, *args, **kwargs):
            raise ValueError("bad content stream")

        monkeypatch.setattr(fitz.Page, "get_text", broken_get_text)

        with pytest.raises(ExtractionError, match="Cannot read Damaged.pdf"):
            PdfTextExtractor().extract(path)
