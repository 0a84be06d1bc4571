"""Memory facade used by the reply pipeline: detached capture and recall."""

from __future__ import annotations

import asyncio
from typing import TYPE_CHECKING

from loguru import logger

from personaforge.core.errors import InferenceError
from personaforge.core.models import ConversationId
from personaforge.memory.retriever import MemoryRetriever
from personaforge.memory.store import EmbeddingStore
from personaforge.runtime.tasks import TaskSupervisor
from personaforge.telemetry.base import TelemetryPort

if TYPE_CHECKING:
    from personaforge.inference.queue import InferenceQueue

SUMMARY_PREFIX = "Earlier in this chat: "


class MemoryService:
    """Embeds messages off the critical path and recalls relevant ones.

    ``remember`` returns immediately; the embed-and-store runs on the task
    supervisor and its failures are logged, never raised to the caller.
    """

    def __init__(
        self,
        store: EmbeddingStore,
        retriever: MemoryRetriever,
        *,
        queue: InferenceQueue,
        embedding_model: str,
        tasks: TaskSupervisor,
        top_n: int = 3,
        include_summary: bool = True,
        telemetry: TelemetryPort | None = None,
    ) -> None:
        self.store = store
        self.retriever = retriever
        self._queue = queue
        self._embedding_model = embedding_model
        self._tasks = tasks
        self.top_n = max(0, int(top_n))
        self._include_summary = include_summary
        self._telemetry = telemetry

    # ── Capture ──────────────────────────────────────────────────────

    def remember(
        self,
        conversation: ConversationId,
        text: str,
        *,
        role: str = "user",
        importance: float = 1.0,
    ) -> None:
        """Schedule embedding and storage of *text*; never blocks."""
        if not text.strip():
            return
        self._tasks.spawn(
            self._embed_and_store(conversation, text, role=role, importance=importance),
            label=f"memory:{conversation.key}",
        )

    async def _embed_and_store(
        self,
        conversation: ConversationId,
        text: str,
        *,
        role: str,
        importance: float,
    ) -> None:
        try:
            vector = await self._queue.embed(self._embedding_model, text)
        except InferenceError as exc:
            logger.warning("Memory embed failed for {}: {}", conversation, exc)
            self._incr("memory_capture_total", "embed_failed")
            return
        if not vector:
            self._incr("memory_capture_total", "empty_vector")
            return
        await asyncio.to_thread(
            self.store.store,
            conversation.key,
            text,
            vector,
            importance=importance,
            role=role,
        )
        self._incr("memory_capture_total", "stored")

    # ── Recall ───────────────────────────────────────────────────────

    async def recall(
        self,
        conversation: ConversationId,
        query: str,
        top_n: int | None = None,
    ) -> list[str]:
        """Return memory texts for *query*; empty on any embedding failure."""
        limit = self.top_n if top_n is None else max(0, int(top_n))
        memories: list[str] = []
        if self._include_summary:
            summary = await asyncio.to_thread(self.store.latest_summary, conversation.key)
            if summary is not None:
                memories.append(SUMMARY_PREFIX + summary.summary_text)
        if limit == 0 or not query.strip():
            return memories
        try:
            vector = await self._queue.embed(self._embedding_model, query)
        except InferenceError as exc:
            logger.warning("Memory recall skipped for {}: {}", conversation, exc)
            return memories
        texts = await asyncio.to_thread(self.retriever.retrieve, conversation.key, vector, limit)
        memories.extend(texts)
        if self._telemetry is not None:
            self._telemetry.histogram("memory_recall_hits", float(len(texts)))
        return memories

    def _incr(self, name: str, status: str) -> None:
        if self._telemetry is not None:
            self._telemetry.incr(name, labels=(("status", status),))
