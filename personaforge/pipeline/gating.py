"""Debounce, trigger and rate-limit stages."""

from __future__ import annotations

from loguru import logger

from personaforge.core.pipeline import NextFn, PipelineContext
from personaforge.policy.rate_gate import RateGate
from personaforge.policy.trigger import TriggerEvaluator
from personaforge.runtime.debounce import DebounceAggregator


class DebounceMiddleware:
    """Only the task that wins the debounced batch continues down the chain."""

    def __init__(self, *, aggregator: DebounceAggregator) -> None:
        self._aggregator = aggregator

    async def __call__(self, ctx: PipelineContext, next: NextFn) -> None:
        message = ctx.message
        batch = await self._aggregator.collect(
            message.conversation,
            message.text,
            user_id=message.sender_id,
            user_name=message.sender_name,
            message_id=message.message_id,
            reply_to_bot=message.is_reply_to_bot,
            has_media=message.media is not None,
        )
        if batch is None:
            ctx.halt("debounce_pending")
            return
        ctx.batch = batch
        if len(batch.messages) > 1:
            ctx.metric("debounce_batched", value=len(batch.messages))
        await next(ctx)


class TriggerMiddleware:
    def __init__(self, *, evaluator: TriggerEvaluator) -> None:
        self._evaluator = evaluator

    async def __call__(self, ctx: PipelineContext, next: NextFn) -> None:
        assert ctx.settings is not None and ctx.persona is not None
        batch = ctx.batch
        decision = self._evaluator.evaluate(
            ctx.text,
            ctx.settings,
            ctx.persona,
            ctx.message.is_private,
            batch.reply_to_bot if batch is not None else ctx.message.is_reply_to_bot,
            has_media=batch.has_media if batch is not None else ctx.message.media is not None,
        )
        if not decision.reply:
            ctx.metric("trigger_rejected")
            ctx.halt("not_triggered")
            return
        ctx.trigger_rule = decision.rule
        ctx.metric("trigger_matched", labels=(("rule", decision.rule or "unknown"),))
        await next(ctx)


class RateGateMiddleware:
    def __init__(self, *, gate: RateGate) -> None:
        self._gate = gate

    async def __call__(self, ctx: PipelineContext, next: NextFn) -> None:
        assert ctx.settings is not None
        message = ctx.message
        # Only turns that go on to reply may stamp the conversation cooldown.
        user_id = ctx.batch.user_id if ctx.batch is not None else message.sender_id
        if not await self._gate.allow_user(user_id):
            logger.debug("User {} hit the burst limit", user_id)
            ctx.metric("rate_limited", labels=(("scope", "user"),))
            ctx.halt("user_rate_limited")
            return
        if not await self._gate.allow(message.conversation, ctx.settings.cooldown_seconds):
            logger.debug("Cooldown active in {}", message.conversation)
            ctx.metric("rate_limited", labels=(("scope", "conversation"),))
            ctx.halt("cooldown")
            return
        await next(ctx)
