"""Similarity x recency x importance ranking over stored chunks."""

from __future__ import annotations

import math
import time
from collections.abc import Sequence

from personaforge.memory.models import MemoryChunk, MemoryHit
from personaforge.memory.store import EmbeddingStore

SECONDS_PER_HOUR = 3600.0


def cosine_similarity(a: Sequence[float], b: Sequence[float]) -> float:
    """Cosine of two vectors; 0.0 for empty, mismatched or zero-magnitude input."""
    if not a or not b or len(a) != len(b):
        return 0.0
    dot = 0.0
    norm_a = 0.0
    norm_b = 0.0
    for x, y in zip(a, b, strict=True):
        dot += x * y
        norm_a += x * x
        norm_b += y * y
    if norm_a <= 0.0 or norm_b <= 0.0:
        return 0.0
    return dot / (math.sqrt(norm_a) * math.sqrt(norm_b))


def decay(age_hours: float, decay_rate: float) -> float:
    """Exponential recency weight ``exp(-rate * h / 24)``; 1.0 at age zero."""
    if decay_rate <= 0.0:
        return 1.0
    return math.exp(-decay_rate * max(0.0, age_hours) / 24.0)


class MemoryRetriever:
    """Scores the most recent chunks of a conversation against a query vector."""

    def __init__(
        self,
        store: EmbeddingStore,
        *,
        decay_rate: float = 0.1,
        candidate_limit: int = 100,
    ) -> None:
        self._store = store
        self.decay_rate = max(0.0, float(decay_rate))
        self.candidate_limit = max(1, int(candidate_limit))

    def rank(
        self,
        chunks: Sequence[MemoryChunk],
        query_embedding: Sequence[float],
        *,
        now: float | None = None,
    ) -> list[MemoryHit]:
        """Score *chunks* and sort descending; equal scores keep input order."""
        current = time.time() if now is None else now
        hits: list[MemoryHit] = []
        for chunk in chunks:
            similarity = cosine_similarity(query_embedding, chunk.embedding)
            weight = decay((current - chunk.created_at) / SECONDS_PER_HOUR, self.decay_rate)
            hits.append(
                MemoryHit(
                    chunk=chunk,
                    similarity=similarity,
                    decay=weight,
                    score=similarity * weight * chunk.importance,
                )
            )
        hits.sort(key=lambda hit: hit.score, reverse=True)
        return hits

    def search(
        self,
        conversation_key: str,
        query_embedding: Sequence[float],
        top_n: int,
        *,
        now: float | None = None,
    ) -> list[MemoryHit]:
        if top_n <= 0 or not query_embedding:
            return []
        candidates = self._store.load_recent(conversation_key, self.candidate_limit)
        return self.rank(candidates, query_embedding, now=now)[:top_n]

    def retrieve(
        self,
        conversation_key: str,
        query_embedding: Sequence[float],
        top_n: int,
        *,
        now: float | None = None,
    ) -> list[str]:
        return [hit.chunk.text for hit in self.search(conversation_key, query_embedding, top_n, now=now)]
