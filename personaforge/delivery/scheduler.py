"""Human-paced, multi-chunk reply delivery."""

from __future__ import annotations

import asyncio
import random
from collections.abc import Awaitable, Callable
from typing import TypeAlias

from loguru import logger

from personaforge.config.schema import HumanizeConfig
from personaforge.core.errors import FormatRejectedError, PlatformError
from personaforge.core.models import (
    ChatAction,
    ConversationId,
    DeliveryReport,
    MessageId,
    SentMessage,
    Turn,
)
from personaforge.core.ports import ChatPlatformPort
from personaforge.delivery.humanize import is_no_reply, reading_delay, split_chunks, typing_seconds
from personaforge.delivery.markdown import escape_markdown_v2
from personaforge.memory.service import MemoryService
from personaforge.runtime.state import ConversationRuntimeState
from personaforge.telemetry.base import TelemetryPort

SleepFn: TypeAlias = Callable[[float], Awaitable[None]]

DISTRACTED_TYPING_SECONDS = (2.0, 4.0)
DISTRACTED_IDLE_SECONDS = (3.0, 10.0)


class DeliveryScheduler:
    """Splits a reply into chunks and sends them with simulated typing.

    Shutdown is checked before each chunk: a chunk already being typed
    is still sent, the next one is not started.
    """

    def __init__(
        self,
        platform: ChatPlatformPort,
        *,
        state: ConversationRuntimeState,
        identity_name: str,
        settings: HumanizeConfig | None = None,
        memory: MemoryService | None = None,
        no_reply_token: str = "NO_REPLY",
        rng: random.Random | None = None,
        sleep: SleepFn = asyncio.sleep,
        shutdown: asyncio.Event | None = None,
        telemetry: TelemetryPort | None = None,
    ) -> None:
        self._platform = platform
        self._state = state
        self.identity_name = identity_name
        self._settings = settings or HumanizeConfig()
        self._memory = memory
        self._no_reply_token = no_reply_token
        self._rng = rng or random.Random()
        self._sleep = sleep
        self._shutdown = shutdown or asyncio.Event()
        self._telemetry = telemetry

    async def deliver(
        self,
        conversation: ConversationId,
        raw_reply: str,
        reply_to_message_id: MessageId | None,
        is_private: bool,
        *,
        use_reply: bool | None = None,
        source_text: str = "",
    ) -> DeliveryReport:
        if is_no_reply(raw_reply, self._no_reply_token):
            logger.debug("Model opted out of replying in {}", conversation)
            return DeliveryReport(status="skipped", reason="no_reply_token")

        chunks = split_chunks(raw_reply, self._settings.chunk_delimiter, self._no_reply_token)
        if not chunks:
            return DeliveryReport(status="skipped", reason="empty_reply")

        if use_reply is None:
            use_reply = self._decide_threading(is_private)

        cfg = self._settings
        delay = reading_delay(
            source_text,
            minimum=cfg.min_response_delay,
            maximum=cfg.max_response_delay,
            rng=self._rng,
        )
        if delay > 0:
            await self._sleep(delay)

        if self._rng.random() < cfg.distracted_probability:
            await self._distracted_detour(conversation)

        delivered: list[tuple[str, SentMessage]] = []
        failed = 0
        interrupted = False
        for index, chunk in enumerate(chunks):
            if self._shutdown.is_set():
                interrupted = True
                logger.info(
                    "Delivery to {} stopped by shutdown after {}/{} chunks",
                    conversation,
                    index,
                    len(chunks),
                )
                break
            if index > 0:
                await self._sleep(self._rng.uniform(cfg.min_chunk_pause, cfg.max_chunk_pause))

            await self._type_for(conversation, self._typing_seconds(chunk))
            reply_to = reply_to_message_id if index == 0 and use_reply else None
            sent = await self._send_chunk(conversation, chunk, reply_to)
            if sent is None:
                failed += 1
                continue
            delivered.append((chunk, sent))

        for chunk, _ in delivered:
            if self._memory is not None:
                self._memory.remember(conversation, chunk, role="assistant")
            await self._state.append_turn(
                conversation, Turn(speaker=self.identity_name, text=chunk, from_self=True)
            )

        sent_messages = tuple(message for _, message in delivered)
        if not sent_messages:
            return DeliveryReport(status="aborted", failed_chunks=failed, reason="all_chunks_failed")
        if failed or interrupted:
            reason = "shutdown" if interrupted else "chunk_failed"
            return DeliveryReport(status="partial", sent=sent_messages, failed_chunks=failed, reason=reason)
        return DeliveryReport(status="sent", sent=sent_messages)

    def request_shutdown(self) -> None:
        self._shutdown.set()

    # ── Pacing ───────────────────────────────────────────────────────

    def _decide_threading(self, is_private: bool) -> bool:
        if is_private:
            return False
        return self._rng.random() < self._settings.use_reply_probability

    def _typing_seconds(self, chunk: str) -> float:
        cfg = self._settings
        return typing_seconds(
            chunk,
            chars_per_minute=cfg.typing_speed_cpm,
            jitter=cfg.typing_jitter,
            rng=self._rng,
            minimum=cfg.min_typing_seconds,
            maximum=cfg.max_typing_seconds,
        )

    async def _distracted_detour(self, conversation: ConversationId) -> None:
        await self._typing_action(conversation, "typing")
        await self._sleep(self._rng.uniform(*DISTRACTED_TYPING_SECONDS))
        await self._typing_action(conversation, "cancel")
        await self._sleep(self._rng.uniform(*DISTRACTED_IDLE_SECONDS))

    async def _type_for(self, conversation: ConversationId, seconds: float) -> None:
        """Hold the typing indicator for *seconds*, refreshing before it lapses."""
        remaining = seconds
        refresh = self._settings.typing_refresh_seconds
        while remaining > 0:
            await self._typing_action(conversation, "typing")
            step = min(refresh, remaining)
            await self._sleep(step)
            remaining -= step

    async def _typing_action(self, conversation: ConversationId, action: ChatAction) -> None:
        try:
            await self._platform.send_typing_action(conversation, action=action)
        except PlatformError as exc:
            logger.debug("Typing action {} failed in {}: {}", action, conversation, exc)

    # ── Sending ──────────────────────────────────────────────────────

    async def _send_chunk(
        self,
        conversation: ConversationId,
        chunk: str,
        reply_to: MessageId | None,
    ) -> SentMessage | None:
        if self._settings.rich_text:
            try:
                sent = await self._platform.send_message(
                    conversation,
                    escape_markdown_v2(chunk),
                    format="markdown_v2",
                    reply_to=reply_to,
                )
                self._count("sent")
                return sent
            except FormatRejectedError as exc:
                logger.debug("Rich text rejected in {}, resending plain: {}", conversation, exc)
                self._count("format_fallback")
            except PlatformError as exc:
                logger.warning("Failed to send chunk to {}: {}", conversation, exc)
                self._count("failed")
                return None

        try:
            sent = await self._platform.send_message(conversation, chunk, reply_to=reply_to)
        except PlatformError as exc:
            logger.warning("Failed to send chunk to {}: {}", conversation, exc)
            self._count("failed")
            return None
        self._count("sent")
        return sent

    def _count(self, status: str) -> None:
        if self._telemetry is not None:
            self._telemetry.incr("delivery_chunks_total", labels=(("status", status),))
