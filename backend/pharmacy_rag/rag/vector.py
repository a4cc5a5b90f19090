from __future__ import annotations

import math
from collections.abc import Sequence
from dataclasses import dataclass


@dataclass(frozen=True)
class Similarity:
    index: int
    score: float


def cosine_similarity(a: Sequence[float], b: Sequence[float]) -> float:
    """dot(a, b) / (|a| * |b|); 0.0 when either vector has zero magnitude."""
    if len(a) != len(b):
        raise ValueError(f"Vectors must have the same length ({len(a)} != {len(b)})")
    dot = 0.0
    norm_a = 0.0
    norm_b = 0.0
    for x, y in zip(a, b):
        dot += x * y
        norm_a += x * x
        norm_b += y * y
    norm_a = math.sqrt(norm_a)
    norm_b = math.sqrt(norm_b)
    if norm_a == 0 or norm_b == 0:
        return 0.0
    score = dot / (norm_a * norm_b)
    # Rounding can push |score| a hair past 1.
    return max(-1.0, min(1.0, score))


def normalize_vector(vector: Sequence[float] | None) -> list[float]:
    if not vector:
        return []
    magnitude = math.sqrt(sum(v * v for v in vector))
    if magnitude == 0:
        return list(vector)
    return [v / magnitude for v in vector]


def find_top_k_similar(query: Sequence[float], vectors: Sequence[Sequence[float]], k: int = 5) -> list[Similarity]:
    """Exhaustive scan. Highest score first; equal scores keep corpus order."""
    if k <= 0:
        return []
    similarities = [Similarity(index=i, score=cosine_similarity(query, vec)) for i, vec in enumerate(vectors)]
    similarities.sort(key=lambda item: item.score, reverse=True)
    return similarities[:k]
