"""
Ingestion report persistence
-----------------------------
Every ingestion run writes its IngestionReport to disk so `taxrag status`
can show what the store currently holds without connecting to it.
"""
from __future__ import annotations

from pathlib import Path
from typing import Optional

from loguru import logger

from taxrag.schemas import IngestionReport
from taxrag.utils.helpers import load_json, save_json


def save_report(report: IngestionReport, path: str | Path) -> None:
    save_json(report.model_dump(mode="json"), path)
    logger.info(f"[Ingestion] Report written -> {path}")


def load_report(path: str | Path) -> Optional[IngestionReport]:
    """The last saved report, or None if no run has been recorded."""
    path = Path(path)
    if not path.exists():
        return None
    return IngestionReport(**load_json(path))
