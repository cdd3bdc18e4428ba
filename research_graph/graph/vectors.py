from __future__ import annotations

import json
import math
from typing import Any, Sequence


def cosine_similarity(left: Sequence[float], right: Sequence[float]) -> float:
    if not left or not right or len(left) != len(right):
        return 0.0
    dot = sum(a * b for a, b in zip(left, right))
    left_norm = math.sqrt(sum(a * a for a in left))
    right_norm = math.sqrt(sum(b * b for b in right))
    if left_norm <= 0 or right_norm <= 0:
        return 0.0
    return dot / (left_norm * right_norm)


def normalize(vector: Sequence[float]) -> list[float]:
    norm = math.sqrt(sum(v * v for v in vector))
    if norm <= 0:
        return [float(v) for v in vector]
    return [float(v) / norm for v in vector]


def running_mean(centroid: Sequence[float], count: int, embedding: Sequence[float]) -> list[float]:
    """Fold one more member into a centroid that currently averages ``count`` members."""
    if len(centroid) != len(embedding):
        raise ValueError(
            f"Dimension mismatch: centroid has {len(centroid)}, embedding has {len(embedding)}"
        )
    n = max(int(count), 0)
    return [(c * n + e) / (n + 1) for c, e in zip(centroid, embedding)]


def parse_embedding(value: Any) -> list[float]:
    """Accept a list, tuple or the ``'[0.1,0.2]'`` text form pgvector returns."""
    if value is None:
        return []
    if isinstance(value, str):
        text = value.strip()
        if not text:
            return []
        parsed = json.loads(text)
        return [float(v) for v in parsed]
    return [float(v) for v in value]


def to_pgvector(vector: Sequence[float]) -> str:
    return "[" + ",".join(repr(float(v)) for v in vector) + "]"
