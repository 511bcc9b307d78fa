"""Cosine similarity and its ranking-safe form."""
from __future__ import annotations

import math
from typing import Sequence

import numpy as np


def cosine_similarity(a: Sequence[float], b: Sequence[float]) -> float:
    """
    dot(a, b) / (|a| * |b|); NaN when either vector has zero magnitude.

    Raises:
        ValueError: the vectors differ in length.
    """
    va = np.asarray(a, dtype=np.float64)
    vb = np.asarray(b, dtype=np.float64)
    if va.shape != vb.shape:
        raise ValueError(f"Vector length mismatch: {va.shape[0]} vs {vb.shape[0]}")

    denom = float(np.linalg.norm(va) * np.linalg.norm(vb))
    if denom == 0.0:
        return math.nan
    return float(np.dot(va, vb) / denom)


def rank_score(similarity: float) -> float:
    """Map an undefined (NaN) similarity to -inf so it sorts last."""
    return -math.inf if math.isnan(similarity) else similarity
