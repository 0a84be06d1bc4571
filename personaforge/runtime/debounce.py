"""Coalesce bursts of messages from one conversation into a single turn."""

from __future__ import annotations

import asyncio
import time
from collections.abc import Awaitable, Callable
from typing import Literal, TypeAlias

from loguru import logger

from personaforge.core.models import ConversationId, MessageId, PendingBatch
from personaforge.runtime.state import ConversationRuntimeState

DEBOUNCE_MS = 1500

SubmitResult: TypeAlias = Literal["pending", "already_pending"]
SleepFn: TypeAlias = Callable[[float], Awaitable[None]]


class DebounceAggregator:
    """Collects arrivals per conversation until the burst goes quiet.

    The first ``submit`` of a burst owns the batch and must call
    ``wait_and_take``; later submits only append. The batch is handed out
    at most once: whoever pops it from the state map proceeds.
    """

    def __init__(
        self,
        state: ConversationRuntimeState,
        *,
        interval_ms: int = DEBOUNCE_MS,
        clock: Callable[[], float] = time.monotonic,
        sleep: SleepFn = asyncio.sleep,
    ) -> None:
        self._state = state
        self._interval = max(0, int(interval_ms)) / 1000.0
        self._clock = clock
        self._sleep = sleep

    @property
    def interval_seconds(self) -> float:
        return self._interval

    async def submit(
        self,
        conversation: ConversationId,
        text: str,
        *,
        user_id: str,
        user_name: str = "",
        message_id: MessageId | None = None,
        reply_to_bot: bool = False,
        has_media: bool = False,
    ) -> SubmitResult:
        now = self._clock()
        async with self._state.pending_lock:
            batch = self._state.pending.get(conversation.key)
            if batch is not None:
                batch.messages.append(text)
                batch.last_arrival = now
                if message_id is not None:
                    batch.reply_to_message_id = message_id
                batch.reply_to_bot = batch.reply_to_bot or reply_to_bot
                batch.has_media = batch.has_media or has_media
                return "already_pending"

            self._state.pending[conversation.key] = PendingBatch(
                messages=[text],
                last_arrival=now,
                user_id=user_id,
                user_display_name=user_name,
                reply_to_message_id=message_id,
                reply_to_bot=reply_to_bot,
                has_media=has_media,
            )
            return "pending"

    async def wait_and_take(self, conversation: ConversationId) -> PendingBatch | None:
        """Wait out the burst and remove the batch; ``None`` if another task took it."""
        await self._sleep(self._interval)
        async with self._state.pending_lock:
            batch = self._state.pending.get(conversation.key)
            if batch is None:
                return None
            if self._clock() - batch.last_arrival >= self._interval / 2:
                return self._state.pending.pop(conversation.key)

        # Still receiving: extend once, then flush regardless.
        await self._sleep(self._interval)
        async with self._state.pending_lock:
            batch = self._state.pending.pop(conversation.key, None)
        if batch is not None:
            logger.debug(
                "Debounce force-flush for {} after extension ({} messages)",
                conversation,
                len(batch.messages),
            )
        return batch

    async def collect(
        self,
        conversation: ConversationId,
        text: str,
        *,
        user_id: str,
        user_name: str = "",
        message_id: MessageId | None = None,
        reply_to_bot: bool = False,
        has_media: bool = False,
    ) -> PendingBatch | None:
        """Submit one message and, if it opened the burst, wait for the batch."""
        result = await self.submit(
            conversation,
            text,
            user_id=user_id,
            user_name=user_name,
            message_id=message_id,
            reply_to_bot=reply_to_bot,
            has_media=has_media,
        )
        if result == "already_pending":
            return None
        return await self.wait_and_take(conversation)

    async def discard(self, conversation: ConversationId) -> PendingBatch | None:
        async with self._state.pending_lock:
            return self._state.pending.pop(conversation.key, None)
