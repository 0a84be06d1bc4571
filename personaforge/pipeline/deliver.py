"""Final stage: hand the reply to the delivery scheduler."""

from __future__ import annotations

from personaforge.core.pipeline import NextFn, PipelineContext
from personaforge.delivery.scheduler import DeliveryScheduler


class DeliverMiddleware:
    def __init__(self, *, scheduler: DeliveryScheduler) -> None:
        self._scheduler = scheduler

    async def __call__(self, ctx: PipelineContext, next: NextFn) -> None:
        if ctx.reply is None:
            ctx.halt("no_reply")
            return
        message = ctx.message
        reply_to = ctx.batch.reply_to_message_id if ctx.batch is not None else message.message_id
        report = await self._scheduler.deliver(
            message.conversation,
            ctx.reply,
            reply_to,
            message.is_private,
            source_text=ctx.text,
        )
        ctx.report = report
        ctx.reason = report.reason or report.status
        ctx.metric("delivery", labels=(("status", report.status),))
        await next(ctx)
