"""Middleware pipeline for inbound message processing.

Each reply stage is a small middleware class. A middleware calls ``next()``
to pass through, or ``ctx.halt(reason)`` to short-circuit the chain::

    pipeline = Pipeline([
        DeduplicationMiddleware(ttl_seconds=1200),
        DebounceMiddleware(aggregator=aggregator),
        TriggerMiddleware(evaluator=evaluator, ...),
        GenerateMiddleware(queue=queue, ...),
    ])
    ctx = await pipeline.run(message)
"""

from __future__ import annotations

from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from typing import Protocol, runtime_checkable

from personaforge.core.models import (
    ConversationSettings,
    DeliveryReport,
    InboundMessage,
    PendingBatch,
    Persona,
    TurnOutcome,
)


@dataclass(frozen=True, slots=True, kw_only=True)
class MetricRecord:
    """One counter increment emitted by a middleware."""

    name: str
    value: int = 1
    labels: tuple[tuple[str, str], ...] = ()


@dataclass
class PipelineContext:
    """Mutable state flowing through the middleware chain.

    Attributes:
        message: The inbound message. Media enrichment may replace it with a
            copy whose text carries the synthetic transcript/description.
        settings: Conversation settings resolved for this turn.
        persona: Active persona resolved for this turn.
        batch: Debounced batch this task won; ``None`` until debounce ran.
        trigger_rule: Name of the trigger predicate that fired.
        memories: Recalled memory texts in retrieval order.
        prompt: Rendered inference prompt.
        reply: Raw model output.
        report: Delivery result.
        halted: When ``True``, no further middleware runs.
        reason: Why the chain halted (or how it finished).
    """

    message: InboundMessage
    settings: ConversationSettings | None = None
    persona: Persona | None = None
    batch: PendingBatch | None = None
    trigger_rule: str | None = None
    memories: list[str] = field(default_factory=list)
    prompt: str | None = None
    reply: str | None = None
    report: DeliveryReport | None = None
    metrics: list[MetricRecord] = field(default_factory=list)
    halted: bool = False
    failed: bool = False
    reason: str = ""

    # ── Convenience helpers ──────────────────────────────────────────

    @property
    def text(self) -> str:
        """Text of the logical turn: the batch when debounced, else the message."""
        if self.batch is not None:
            return self.batch.text
        return self.message.text

    def metric(
        self,
        name: str,
        value: int = 1,
        labels: tuple[tuple[str, str], ...] = (),
    ) -> None:
        self.metrics.append(MetricRecord(name=name, value=value, labels=labels))

    def halt(self, reason: str, *, failed: bool = False) -> None:
        """Signal the pipeline to stop after this middleware."""
        self.halted = True
        self.failed = failed
        self.reason = reason

    def outcome(self) -> TurnOutcome:
        if self.failed:
            return TurnOutcome(status="failed", reason=self.reason, report=self.report)
        if self.reason == "debounce_pending":
            return TurnOutcome(status="pending", reason=self.reason)
        if self.report is not None and self.report.sent:
            return TurnOutcome(status="replied", reason=self.reason or "sent", report=self.report)
        return TurnOutcome(status="suppressed", reason=self.reason or "no_reply", report=self.report)


NextFn = Callable[[PipelineContext], Awaitable[None]]
"""Signature for the ``next`` callback passed to each middleware."""


@runtime_checkable
class Middleware(Protocol):
    """Protocol for pipeline middleware.

    Implementations must be callable with ``(ctx, next)`` and may:

    1. Modify ``ctx`` and call ``await next(ctx)`` to pass through.
    2. Call ``ctx.halt(reason)`` to short-circuit.
    3. Call ``await next(ctx)`` then inspect the result to post-process.
    """

    async def __call__(self, ctx: PipelineContext, next: NextFn) -> None: ...


class Pipeline:
    """Ordered chain of middleware that processes one inbound message."""

    __slots__ = ("_layers",)

    def __init__(self, layers: list[Middleware]) -> None:
        self._layers = list(layers)

    async def run(self, message: InboundMessage) -> PipelineContext:
        """Process *message* through the full middleware chain."""
        ctx = PipelineContext(message=message)
        await self._execute(ctx, index=0)
        return ctx

    async def _execute(self, ctx: PipelineContext, index: int) -> None:
        if ctx.halted or index >= len(self._layers):
            return
        layer = self._layers[index]
        await layer(ctx, lambda c: self._execute(c, index + 1))

    def __len__(self) -> int:
        return len(self._layers)

    def __repr__(self) -> str:
        names = [type(m).__name__ for m in self._layers]
        return f"Pipeline({' → '.join(names)})"
