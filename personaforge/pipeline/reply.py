"""Reply pipeline: the full middleware chain for one inbound message."""

from __future__ import annotations

from loguru import logger

from personaforge.config.schema import InferenceConfig, ReplyConfig
from personaforge.core.models import InboundMessage, TurnOutcome
from personaforge.core.pipeline import Middleware, Pipeline
from personaforge.core.ports import ChatPlatformPort, OwnerNotifierPort, SettingsPort
from personaforge.delivery.scheduler import DeliveryScheduler
from personaforge.inference.queue import InferenceQueue
from personaforge.media.enrich import MediaEnricher
from personaforge.memory.service import MemoryService
from personaforge.pipeline.dedup import DeduplicationMiddleware, StaleMessageMiddleware
from personaforge.pipeline.deliver import DeliverMiddleware
from personaforge.pipeline.gating import DebounceMiddleware, RateGateMiddleware, TriggerMiddleware
from personaforge.pipeline.generate import GenerateMiddleware, PromptMiddleware, RecallMiddleware
from personaforge.pipeline.ingest import (
    AutoReplyMiddleware,
    MediaMiddleware,
    RecordInboundMiddleware,
    SettingsMiddleware,
)
from personaforge.policy.rate_gate import RateGate
from personaforge.policy.trigger import TriggerEvaluator
from personaforge.prompting.assembler import PromptAssembler
from personaforge.runtime.debounce import DebounceAggregator
from personaforge.runtime.state import ConversationRuntimeState
from personaforge.telemetry.base import TelemetryPort


class ReplyPipeline:
    """Orchestrates gating, recall, generation and delivery per message.

    Stage order::

        dedup → stale → settings → media → record → auto-reply
        → debounce → trigger → rate gate → recall → prompt → generate → deliver
    """

    def __init__(
        self,
        *,
        platform: ChatPlatformPort,
        settings: SettingsPort,
        state: ConversationRuntimeState,
        aggregator: DebounceAggregator,
        evaluator: TriggerEvaluator,
        rate_gate: RateGate,
        assembler: PromptAssembler,
        queue: InferenceQueue,
        scheduler: DeliveryScheduler,
        identity_name: str,
        reply_config: ReplyConfig | None = None,
        inference_config: InferenceConfig | None = None,
        memory: MemoryService | None = None,
        enricher: MediaEnricher | None = None,
        notifier: OwnerNotifierPort | None = None,
        telemetry: TelemetryPort | None = None,
    ) -> None:
        reply_cfg = reply_config or ReplyConfig()
        inference_cfg = inference_config or InferenceConfig()
        self._telemetry = telemetry

        layers: list[Middleware] = [
            DeduplicationMiddleware(ttl_seconds=reply_cfg.dedupe_ttl_seconds),
            StaleMessageMiddleware(max_age_seconds=reply_cfg.ignore_older_than_seconds),
            SettingsMiddleware(settings=settings),
        ]
        if enricher is not None:
            layers.append(MediaMiddleware(enricher=enricher))
        layers += [
            RecordInboundMiddleware(state=state, memory=memory),
            AutoReplyMiddleware(),
            DebounceMiddleware(aggregator=aggregator),
            TriggerMiddleware(evaluator=evaluator),
            RateGateMiddleware(gate=rate_gate),
        ]
        if memory is not None:
            layers.append(RecallMiddleware(memory=memory))
        layers += [
            PromptMiddleware(assembler=assembler, state=state, identity_name=identity_name),
            GenerateMiddleware(
                queue=queue,
                platform=platform,
                inference=inference_cfg,
                reply=reply_cfg,
                identity_name=identity_name,
                notifier=notifier,
            ),
            DeliverMiddleware(scheduler=scheduler),
        ]
        self._pipeline = Pipeline(layers)

    @property
    def pipeline(self) -> Pipeline:
        return self._pipeline

    async def handle(self, message: InboundMessage) -> TurnOutcome:
        ctx = await self._pipeline.run(message)
        outcome = ctx.outcome()
        if self._telemetry is not None:
            for record in ctx.metrics:
                self._telemetry.incr(record.name, record.value, record.labels)
            self._telemetry.incr("pipeline_turns_total", labels=(("outcome", outcome.status),))
        if outcome.status != "pending":
            logger.debug(
                "Turn in {} finished: {} ({})",
                message.conversation,
                outcome.status,
                outcome.reason,
            )
        return outcome
