"""Retention: summary checkpoints and per-conversation caps."""

from __future__ import annotations

import asyncio
import time
from typing import TYPE_CHECKING

from loguru import logger

from personaforge.core.errors import InferenceError
from personaforge.core.ports import SummarizerPort
from personaforge.memory.models import MemorySummary, RetentionReport
from personaforge.memory.store import EmbeddingStore

if TYPE_CHECKING:
    from personaforge.inference.queue import InferenceQueue

SUMMARY_PROMPT = (
    "Summarize the following chat messages into a short paragraph of facts worth "
    "remembering: who said what, preferences, plans and open questions. "
    "Write plain sentences without a preamble.\n\n{messages}\n\nSummary:"
)


class InferenceSummarizer:
    """``SummarizerPort`` that asks the chat model for a compact recap."""

    def __init__(
        self,
        queue: InferenceQueue,
        *,
        model: str,
        max_tokens: int = 512,
        temperature: float = 0.3,
        max_input_chars: int = 12000,
    ) -> None:
        self._queue = queue
        self._model = model
        self._max_tokens = max_tokens
        self._temperature = temperature
        self._max_input_chars = max_input_chars

    async def summarize(self, texts: list[str]) -> str:
        lines = [f"- {text.strip()}" for text in texts if text.strip()]
        if not lines:
            return ""
        body = "\n".join(lines)
        if len(body) > self._max_input_chars:
            body = body[-self._max_input_chars :]
        prompt = SUMMARY_PROMPT.format(messages=body)
        reply = await self._queue.generate(
            self._model,
            prompt,
            temperature=self._temperature,
            max_tokens=self._max_tokens,
        )
        return reply.strip()


class RetentionJob:
    """Summarize past the threshold, then cap each conversation.

    Summaries run before the cap so no unsummarized chunk is pruned unseen.
    """

    def __init__(
        self,
        store: EmbeddingStore,
        *,
        summarizer: SummarizerPort | None = None,
        retention_cap: int = 1000,
        summary_threshold: int = 50,
    ) -> None:
        self._store = store
        self._summarizer = summarizer
        self.retention_cap = max(1, int(retention_cap))
        self.summary_threshold = max(0, int(summary_threshold))

    async def run_once(self) -> RetentionReport:
        report = RetentionReport()
        keys = await asyncio.to_thread(self._store.conversation_keys)
        report.conversations = len(keys)
        for key in keys:
            if self._summarizer is not None and self.summary_threshold > 0:
                await self._maybe_summarize(key, self._summarizer, report)
            report.pruned += await asyncio.to_thread(self._store.cap, key, self.retention_cap)
        if report.pruned or report.summarized:
            logger.info(
                "Memory retention: conversations={} pruned={} summarized={}",
                report.conversations,
                report.pruned,
                len(report.summarized),
            )
        return report

    async def _maybe_summarize(
        self, key: str, summarizer: SummarizerPort, report: RetentionReport
    ) -> None:
        pending = await asyncio.to_thread(self._store.count_unsummarized, key)
        if pending <= self.summary_threshold:
            return
        chunks = await asyncio.to_thread(self._store.unsummarized, key)
        if not chunks:
            return
        try:
            text = await summarizer.summarize([chunk.text for chunk in chunks])
        except InferenceError as exc:
            logger.warning("Memory summary failed for {}: {}", key, exc)
            report.failed.append(key)
            return
        if not text:
            return
        summary = MemorySummary(
            conversation_key=key,
            summary_text=text,
            from_chunk_id=chunks[0].id,
            to_chunk_id=chunks[-1].id,
            message_count=len(chunks),
            created_at=time.time(),
        )
        await asyncio.to_thread(self._store.record_summary, summary)
        report.summarized.append(key)

    async def run_forever(self, stop: asyncio.Event, *, interval_seconds: float) -> None:
        """Run passes every *interval_seconds* until *stop* is set."""
        while not stop.is_set():
            try:
                await self.run_once()
            except Exception as exc:
                logger.exception(f"Memory retention pass crashed: {exc}")
            try:
                await asyncio.wait_for(stop.wait(), timeout=interval_seconds)
            except TimeoutError:
                continue
