"""Typed models for conversation memory."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import TypeAlias

Role: TypeAlias = str


@dataclass(slots=True)
class MemoryChunk:
    """One embedded message. Only ``importance`` changes after insert."""

    id: int
    conversation_key: str
    text: str
    embedding: list[float]
    created_at: float
    importance: float = 1.0
    role: Role = "user"


@dataclass(slots=True)
class MemoryHit:
    """One scored retrieval hit."""

    chunk: MemoryChunk
    similarity: float
    decay: float
    score: float


@dataclass(slots=True)
class MemorySummary:
    """Compact replacement text covering a contiguous range of chunks."""

    conversation_key: str
    summary_text: str
    from_chunk_id: int
    to_chunk_id: int
    message_count: int
    created_at: float


@dataclass(slots=True)
class RetentionReport:
    """What one retention pass did across all conversations."""

    conversations: int = 0
    pruned: int = 0
    summarized: list[str] = field(default_factory=list)
    failed: list[str] = field(default_factory=list)
