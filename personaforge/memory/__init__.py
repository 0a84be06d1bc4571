"""Conversation memory: embedding store, retrieval and retention."""

from personaforge.memory.models import MemoryChunk, MemoryHit, MemorySummary, RetentionReport
from personaforge.memory.retention import InferenceSummarizer, RetentionJob
from personaforge.memory.retriever import MemoryRetriever, cosine_similarity, decay
from personaforge.memory.service import MemoryService
from personaforge.memory.store import EmbeddingStore

__all__ = [
    "EmbeddingStore",
    "InferenceSummarizer",
    "MemoryChunk",
    "MemoryHit",
    "MemoryRetriever",
    "MemoryService",
    "MemorySummary",
    "RetentionJob",
    "RetentionReport",
    "cosine_similarity",
    "decay",
]
