"""Recall, prompt assembly and inference stages."""

from __future__ import annotations

from loguru import logger

from personaforge.config.schema import InferenceConfig, ReplyConfig
from personaforge.core.errors import InferenceError, InferenceTimeoutError, PlatformError
from personaforge.core.pipeline import NextFn, PipelineContext
from personaforge.core.ports import ChatPlatformPort, OwnerNotifierPort
from personaforge.delivery.humanize import polish_reply
from personaforge.inference.queue import InferenceQueue
from personaforge.memory.service import MemoryService
from personaforge.prompting.assembler import PromptAssembler
from personaforge.runtime.state import ConversationRuntimeState


class RecallMiddleware:
    """Attach memories relevant to the turn text when memory is enabled."""

    def __init__(self, *, memory: MemoryService) -> None:
        self._memory = memory

    async def __call__(self, ctx: PipelineContext, next: NextFn) -> None:
        if ctx.settings is not None and ctx.settings.memory_enabled:
            ctx.memories = await self._memory.recall(ctx.message.conversation, ctx.text)
            if ctx.memories:
                ctx.metric("memory_recalled", value=len(ctx.memories))
        await next(ctx)


class PromptMiddleware:
    def __init__(
        self,
        *,
        assembler: PromptAssembler,
        state: ConversationRuntimeState,
        identity_name: str,
    ) -> None:
        self._assembler = assembler
        self._state = state
        self._identity_name = identity_name

    async def __call__(self, ctx: PipelineContext, next: NextFn) -> None:
        assert ctx.settings is not None and ctx.persona is not None
        depth = ctx.settings.context_depth
        history = await self._state.recent_turns(ctx.message.conversation, depth)
        ctx.prompt = self._assembler.build(
            ctx.persona,
            ctx.memories,
            history,
            self._identity_name,
            context_depth=depth,
        )
        await next(ctx)


class GenerateMiddleware:
    """Call the model; on failure alert owners and send a short fallback.

    Nothing is retried: a second attempt could duplicate sends and
    memory writes.
    """

    def __init__(
        self,
        *,
        queue: InferenceQueue,
        platform: ChatPlatformPort,
        inference: InferenceConfig,
        reply: ReplyConfig,
        identity_name: str,
        notifier: OwnerNotifierPort | None = None,
    ) -> None:
        self._queue = queue
        self._platform = platform
        self._inference = inference
        self._reply = reply
        self._identity_name = identity_name
        self._notifier = notifier

    async def __call__(self, ctx: PipelineContext, next: NextFn) -> None:
        assert ctx.prompt is not None
        cfg = self._inference
        try:
            raw = await self._queue.generate(
                cfg.chat_model,
                ctx.prompt,
                temperature=cfg.temperature,
                max_tokens=cfg.max_tokens,
                timeout=cfg.timeout_seconds,
            )
        except InferenceTimeoutError as exc:
            await self._report_failure(ctx, exc, self._reply.timeout_fallback_message)
            ctx.halt("inference_timeout", failed=True)
            return
        except InferenceError as exc:
            await self._report_failure(ctx, exc, self._reply.fallback_message)
            ctx.halt("inference_error", failed=True)
            return

        ctx.reply = polish_reply(raw, self._identity_name)
        await next(ctx)

    async def _report_failure(self, ctx: PipelineContext, exc: InferenceError, fallback: str) -> None:
        conversation = ctx.message.conversation
        kind = "timeout" if isinstance(exc, InferenceTimeoutError) else "backend"
        logger.warning("Reply generation failed in {} ({}): {}", conversation, kind, exc)
        ctx.metric("inference_failed", labels=(("kind", kind),))

        if self._notifier is not None:
            await self._notifier.notify(
                f"⚠️ Reply generation failed in {conversation}\nreason={kind}: {exc}",
                key=f"inference:{kind}",
            )

        if not fallback:
            return
        reply_to = ctx.batch.reply_to_message_id if ctx.batch is not None else ctx.message.message_id
        try:
            await self._platform.send_message(conversation, fallback, reply_to=reply_to)
        except PlatformError as send_exc:
            logger.warning("Fallback reply to {} failed: {}", conversation, send_exc)
