"""Ingress filters: duplicate message ids and stale backlog.

Both run before any state is touched so replays from ``get_updates`` and
messages queued while the account was offline never reach the reply path.
"""

from __future__ import annotations

import time
from collections.abc import Callable

from personaforge.core.pipeline import NextFn, PipelineContext


class DeduplicationMiddleware:
    """Reject messages whose ``(conversation, message_id)`` key was seen recently."""

    def __init__(
        self,
        *,
        ttl_seconds: int = 20 * 60,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._ttl_seconds = max(1, int(ttl_seconds))
        self._clock = clock
        self._recent_keys: dict[str, float] = {}
        self._next_cleanup_at = 0.0

    async def __call__(self, ctx: PipelineContext, next: NextFn) -> None:
        message = ctx.message
        if not message.message_id:
            await next(ctx)
            return

        key = f"{message.conversation.key}:{message.message_id}"
        now = self._clock()
        self._maybe_cleanup(now)

        if key in self._recent_keys:
            ctx.metric("message_drop_duplicate")
            ctx.halt("duplicate")
            return

        self._recent_keys[key] = now + float(self._ttl_seconds)
        await next(ctx)

    def _maybe_cleanup(self, now: float) -> None:
        if now < self._next_cleanup_at:
            return
        expired = [k for k, exp in self._recent_keys.items() if exp <= now]
        for k in expired:
            self._recent_keys.pop(k, None)
        self._next_cleanup_at = now + 30.0


class StaleMessageMiddleware:
    """Drop messages older than ``max_age_seconds`` (0 disables the check)."""

    def __init__(
        self,
        *,
        max_age_seconds: int = 300,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self._max_age = max(0, int(max_age_seconds))
        self._clock = clock

    async def __call__(self, ctx: PipelineContext, next: NextFn) -> None:
        received_at = ctx.message.received_at
        if self._max_age and received_at is not None and self._clock() - received_at > self._max_age:
            ctx.metric("message_drop_stale")
            ctx.halt("stale")
            return
        await next(ctx)
