"""Per-account polling workers and their registry."""

from __future__ import annotations

import asyncio

from loguru import logger

from personaforge.core.errors import PlatformError
from personaforge.core.models import InboundMessage, TurnOutcome
from personaforge.core.ports import ChatPlatformPort
from personaforge.delivery.scheduler import DeliveryScheduler
from personaforge.pipeline.reply import ReplyPipeline
from personaforge.runtime.tasks import TaskSupervisor


class AccountWorker:
    """Polls one account for updates and runs each message through the pipeline.

    Every inbound message gets its own task so a debounce wait or a slow
    delivery in one conversation never blocks polling for the others.
    """

    def __init__(
        self,
        name: str,
        platform: ChatPlatformPort,
        pipeline: ReplyPipeline,
        *,
        scheduler: DeliveryScheduler | None = None,
        shutdown: asyncio.Event | None = None,
        poll_interval: float = 1.0,
        max_pending: int = 1000,
        drain_timeout: float = 30.0,
    ) -> None:
        self.name = name
        self._platform = platform
        self._pipeline = pipeline
        self._scheduler = scheduler
        self._shutdown = shutdown or asyncio.Event()
        self._poll_interval = max(0.0, float(poll_interval))
        self._drain_timeout = drain_timeout
        self._tasks = TaskSupervisor(f"worker:{name}", max_pending=max_pending)
        self.handled = 0

    @property
    def running(self) -> bool:
        return not self._shutdown.is_set()

    @property
    def in_flight(self) -> int:
        return self._tasks.pending

    async def run(self) -> None:
        logger.info(f"Account worker {self.name} started")
        while not self._shutdown.is_set():
            try:
                updates = await self._platform.get_updates()
            except PlatformError as e:
                logger.warning(f"Polling {self.name} failed: {e}")
                updates = []

            for message in updates:
                self.dispatch(message)

            if not updates:
                try:
                    await asyncio.wait_for(self._shutdown.wait(), timeout=self._poll_interval)
                except TimeoutError:
                    continue
        logger.info(f"Account worker {self.name} stopped polling")

    def dispatch(self, message: InboundMessage) -> asyncio.Task[TurnOutcome] | None:
        self.handled += 1
        return self._tasks.spawn(
            self._pipeline.handle(message),
            label=f"{message.conversation.key}:{message.message_id}",
        )

    async def stop(self) -> None:
        """Stop polling; running turns finish their current chunk and return."""
        self._shutdown.set()
        if self._scheduler is not None:
            self._scheduler.request_shutdown()
        await self._tasks.drain(timeout=self._drain_timeout)
        logger.info(f"Account worker {self.name} stopped")


class WorkerRegistry:
    """Starts and stops account workers by name."""

    def __init__(self) -> None:
        self._workers: dict[str, AccountWorker] = {}
        self._runs: dict[str, asyncio.Task[None]] = {}

    def __contains__(self, name: str) -> bool:
        return name in self._workers

    def __len__(self) -> int:
        return len(self._workers)

    @property
    def names(self) -> list[str]:
        return sorted(self._workers)

    def get(self, name: str) -> AccountWorker | None:
        return self._workers.get(name)

    def add(self, worker: AccountWorker) -> None:
        if worker.name in self._workers:
            raise ValueError(f"worker already registered: {worker.name}")
        self._workers[worker.name] = worker
        self._runs[worker.name] = asyncio.create_task(worker.run(), name=f"worker:{worker.name}")

    async def remove(self, name: str) -> bool:
        worker = self._workers.pop(name, None)
        if worker is None:
            return False
        run = self._runs.pop(name)
        await worker.stop()
        await asyncio.gather(run, return_exceptions=True)
        return True

    async def shutdown_all(self) -> None:
        if not self._workers:
            return
        logger.info(f"Stopping {len(self._workers)} account worker(s)...")
        await asyncio.gather(*(self.remove(name) for name in list(self._workers)))

    async def wait(self) -> None:
        """Block until every registered worker loop has exited."""
        if self._runs:
            await asyncio.gather(*self._runs.values(), return_exceptions=True)
