"""Application bootstrap and runtime wiring."""

from __future__ import annotations

import asyncio
import random
import time
from collections.abc import Callable
from dataclasses import dataclass, field
from pathlib import Path
from typing import TYPE_CHECKING

from loguru import logger

from personaforge.core.ports import ChatPlatformPort, TranscriptionPort
from personaforge.delivery.scheduler import DeliveryScheduler
from personaforge.inference.client import OllamaClient
from personaforge.inference.queue import InferenceBackend, InferenceQueue
from personaforge.media.enrich import MediaEnricher
from personaforge.media.transcription import WhisperTranscriber
from personaforge.media.vision import InferenceVisionDescriber
from personaforge.memory.retention import InferenceSummarizer, RetentionJob
from personaforge.memory.retriever import MemoryRetriever
from personaforge.memory.service import MemoryService
from personaforge.memory.store import EmbeddingStore
from personaforge.pipeline.reply import ReplyPipeline
from personaforge.policy.rate_gate import RateGate
from personaforge.policy.settings import ConfigSettingsProvider
from personaforge.policy.trigger import TriggerEvaluator
from personaforge.prompting.assembler import PromptAssembler
from personaforge.runtime.debounce import DebounceAggregator, SleepFn
from personaforge.runtime.notify import PlatformOwnerNotifier
from personaforge.runtime.state import ConversationRuntimeState
from personaforge.runtime.tasks import TaskSupervisor
from personaforge.runtime.worker import AccountWorker, WorkerRegistry
from personaforge.telemetry import InMemoryTelemetry
from personaforge.telemetry.base import TelemetryPort

if TYPE_CHECKING:
    from personaforge.config.schema import Config


def resolve_identity_name(config: "Config") -> str:
    """The name the account speaks as: persona display name, else bot name."""
    return (config.persona.display_name or "").strip() or config.identity.bot_name


def make_memory_store(config: "Config", db_path: Path | None = None) -> EmbeddingStore:
    path = db_path or config.memory.db_file
    return EmbeddingStore(path)


@dataclass(slots=True)
class PersonaRuntime:
    """Lifecycle holder for one composed account runtime."""

    config: "Config"
    platform: ChatPlatformPort
    telemetry: TelemetryPort
    state: ConversationRuntimeState
    queue: InferenceQueue
    pipeline: ReplyPipeline
    scheduler: DeliveryScheduler
    tasks: TaskSupervisor
    shutdown: asyncio.Event
    memory: MemoryService | None = None
    retention: RetentionJob | None = None
    client: OllamaClient | None = None
    workers: WorkerRegistry = field(default_factory=WorkerRegistry)
    _retention_task: asyncio.Task[None] | None = None

    def start_worker(self, name: str, *, poll_interval: float = 1.0) -> AccountWorker:
        worker = AccountWorker(
            name,
            self.platform,
            self.pipeline,
            scheduler=self.scheduler,
            shutdown=self.shutdown,
            poll_interval=poll_interval,
        )
        self.workers.add(worker)
        if self.retention is not None and self._retention_task is None:
            self._retention_task = asyncio.create_task(
                self.retention.run_forever(
                    self.shutdown,
                    interval_seconds=self.config.memory.retention_interval_seconds,
                ),
                name="memory-retention",
            )
        return worker

    async def run(self, name: str = "default", *, poll_interval: float = 1.0) -> None:
        self.start_worker(name, poll_interval=poll_interval)
        try:
            await self.workers.wait()
        finally:
            await self.aclose()

    async def aclose(self) -> None:
        self.shutdown.set()
        self.scheduler.request_shutdown()
        await self.workers.shutdown_all()
        if self._retention_task is not None:
            await asyncio.gather(self._retention_task, return_exceptions=True)
            self._retention_task = None
        await self.tasks.drain(timeout=10.0)
        if self.client is not None:
            await self.client.aclose()
        if self.memory is not None:
            self.memory.store.close()
        logger.info("Runtime closed")


def build_runtime(
    *,
    config: "Config",
    platform: ChatPlatformPort,
    backend: InferenceBackend | None = None,
    telemetry: TelemetryPort | None = None,
    rng: random.Random | None = None,
    sleep: SleepFn = asyncio.sleep,
    clock: Callable[[], float] = time.monotonic,
    memory_db: Path | None = None,
    transcriber: TranscriptionPort | None = None,
) -> PersonaRuntime:
    """Compose the reply pipeline and its collaborators around *platform*.

    When *backend* is omitted an ``OllamaClient`` is created from
    ``config.inference`` and closed with the runtime.
    """
    telemetry = telemetry or InMemoryTelemetry()
    rng = rng or random.Random(config.humanize.seed)
    shutdown = asyncio.Event()
    identity_name = resolve_identity_name(config)

    client: OllamaClient | None = None
    if backend is None:
        client = OllamaClient(
            config.inference.base_url,
            timeout_seconds=config.inference.request_timeout_seconds,
            connect_timeout_seconds=config.inference.connect_timeout_seconds,
        )
        backend = client

    state = ConversationRuntimeState(max_history=config.reply.max_context_messages)
    queue = InferenceQueue(
        backend,
        max_concurrent=config.inference.max_concurrent,
        default_timeout=config.inference.timeout_seconds,
        telemetry=telemetry,
    )
    tasks = TaskSupervisor("memory", telemetry=telemetry)

    memory: MemoryService | None = None
    retention: RetentionJob | None = None
    if config.memory.enabled:
        store = make_memory_store(config, memory_db)
        retriever = MemoryRetriever(
            store,
            decay_rate=config.memory.decay_rate,
            candidate_limit=config.memory.candidate_limit,
        )
        memory = MemoryService(
            store,
            retriever,
            queue=queue,
            embedding_model=config.inference.embedding_model,
            tasks=tasks,
            top_n=config.memory.top_n,
            telemetry=telemetry,
        )
        retention = RetentionJob(
            store,
            summarizer=InferenceSummarizer(queue, model=config.inference.chat_model),
            retention_cap=config.memory.retention_cap,
            summary_threshold=config.memory.summary_threshold,
        )

    enricher: MediaEnricher | None = None
    media_cfg = config.media
    if media_cfg.transcribe_voice or media_cfg.describe_images:
        if transcriber is None and media_cfg.transcribe_voice:
            transcriber = WhisperTranscriber(
                media_cfg.whisper_url,
                api_key=media_cfg.whisper_api_key or None,
                model=media_cfg.whisper_model,
            )
        vision = (
            InferenceVisionDescriber(
                queue,
                model=config.inference.vision_model,
                timeout_seconds=config.inference.timeout_seconds,
            )
            if media_cfg.describe_images
            else None
        )
        enricher = MediaEnricher(
            transcriber=transcriber if media_cfg.transcribe_voice else None,
            vision=vision,
            platform=platform,
            vision_prompt=media_cfg.vision_prompt,
        )

    notifier = PlatformOwnerNotifier(
        platform,
        config.identity.owner_ids,
        cooldown_seconds=config.reply.owner_alert_cooldown_seconds,
        clock=clock,
    )
    scheduler = DeliveryScheduler(
        platform,
        state=state,
        identity_name=identity_name,
        settings=config.humanize,
        memory=memory,
        no_reply_token=config.reply.no_reply_token,
        rng=rng,
        sleep=sleep,
        shutdown=shutdown,
        telemetry=telemetry,
    )
    pipeline = ReplyPipeline(
        platform=platform,
        settings=ConfigSettingsProvider(config),
        state=state,
        aggregator=DebounceAggregator(
            state, interval_ms=config.reply.debounce_ms, clock=clock, sleep=sleep
        ),
        evaluator=TriggerEvaluator(
            account_name=config.identity.bot_name,
            account_handle=config.identity.handle,
            rng=rng,
        ),
        rate_gate=RateGate(
            state,
            default_cooldown_seconds=config.chats.defaults.cooldown_seconds,
            user_limit=config.reply.user_burst_limit,
            user_window_seconds=config.reply.user_burst_window_seconds,
            clock=clock,
        ),
        assembler=PromptAssembler(default_context_depth=config.chats.defaults.context_depth),
        queue=queue,
        scheduler=scheduler,
        identity_name=identity_name,
        reply_config=config.reply,
        inference_config=config.inference,
        memory=memory,
        enricher=enricher,
        notifier=notifier,
        telemetry=telemetry,
    )
    logger.info(
        "Runtime ready: identity={} model={} memory={} media={}",
        identity_name,
        config.inference.chat_model,
        "on" if memory is not None else "off",
        "on" if enricher is not None else "off",
    )
    return PersonaRuntime(
        config=config,
        platform=platform,
        telemetry=telemetry,
        state=state,
        queue=queue,
        pipeline=pipeline,
        scheduler=scheduler,
        tasks=tasks,
        shutdown=shutdown,
        memory=memory,
        retention=retention,
        client=client,
    )
