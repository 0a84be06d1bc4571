"""Ingest stages: settings lookup, media enrichment and inbound recording."""

from __future__ import annotations

from personaforge.core.models import Turn
from personaforge.core.pipeline import NextFn, PipelineContext
from personaforge.core.ports import SettingsPort
from personaforge.media.enrich import MediaEnricher
from personaforge.memory.service import MemoryService
from personaforge.runtime.state import ConversationRuntimeState


class SettingsMiddleware:
    """Resolve persona and conversation settings once per message."""

    def __init__(self, *, settings: SettingsPort) -> None:
        self._settings = settings

    async def __call__(self, ctx: PipelineContext, next: NextFn) -> None:
        ctx.persona = self._settings.get_persona()
        ctx.settings = self._settings.get_settings(ctx.message.conversation)
        await next(ctx)


class MediaMiddleware:
    """Replace media-only messages with their synthetic text turn."""

    def __init__(self, *, enricher: MediaEnricher) -> None:
        self._enricher = enricher

    async def __call__(self, ctx: PipelineContext, next: NextFn) -> None:
        media = ctx.message.media
        if media is not None:
            ctx.message = await self._enricher.enrich(ctx.message)
            ctx.metric("media_enriched", labels=(("kind", media.kind),))
        await next(ctx)


class RecordInboundMiddleware:
    """Append every inbound message to history and schedule its embedding.

    Runs before the auto-reply gate, so chats we never answer still build
    context and memory.
    """

    def __init__(self, *, state: ConversationRuntimeState, memory: MemoryService | None = None) -> None:
        self._state = state
        self._memory = memory

    async def __call__(self, ctx: PipelineContext, next: NextFn) -> None:
        message = ctx.message
        if message.text.strip():
            speaker = message.sender_name or message.sender_id
            await self._state.append_turn(message.conversation, Turn(speaker=speaker, text=message.text))
            if self._memory is not None and ctx.settings is not None and ctx.settings.memory_enabled:
                self._memory.remember(message.conversation, message.text, role="user")
        await next(ctx)


class AutoReplyMiddleware:
    """Stop here when auto-reply is switched off for the conversation."""

    async def __call__(self, ctx: PipelineContext, next: NextFn) -> None:
        if ctx.settings is not None and not ctx.settings.auto_reply_enabled:
            ctx.halt("auto_reply_disabled")
            return
        if not ctx.message.text.strip():
            ctx.halt("empty_message")
            return
        await next(ctx)
