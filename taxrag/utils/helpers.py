"""Shared utility functions used across the pipeline."""
from __future__ import annotations

import os
from pathlib import Path
from typing import Any

import orjson


# --- Text Utilities -----------------------------------------------------------

def truncate_text(text: str, max_chars: int = 80) -> str:
    """Truncate text for log lines and terminal tables."""
    if len(text) <= max_chars:
        return text
    return text[:max_chars].rstrip() + "..."


def format_similarity(value: float) -> str:
    """Similarity as shown to users: four decimals ("0.8731", "-inf")."""
    return f"{value:.4f}"


# --- File I/O -----------------------------------------------------------------

def save_json(data: Any, path: str | Path) -> None:
    """
    Serialise data to JSON using orjson (handles datetime natively).

    Written to a sibling temp file and moved into place, so a reader never
    sees a half-written file.
    """
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    tmp = path.with_name(path.name + ".tmp")
    with open(tmp, "wb") as f:
        f.write(orjson.dumps(data, option=orjson.OPT_INDENT_2 | orjson.OPT_NON_STR_KEYS))
    os.replace(tmp, path)


def load_json(path: str | Path) -> Any:
    """Load JSON data from file."""
    with open(Path(path), "rb") as f:
        return orjson.loads(f.read())
