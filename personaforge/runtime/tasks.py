"""Supervised pool for fire-and-forget background work."""

from __future__ import annotations

import asyncio
from collections.abc import Coroutine
from typing import Any

from loguru import logger

from personaforge.telemetry.base import TelemetryPort


class TaskSupervisor:
    """Tracks detached tasks so failures are logged and shutdown can drain them.

    Callers never await spawned work; the supervisor keeps a strong reference
    until completion and reports exceptions through loguru and telemetry.
    """

    def __init__(
        self,
        name: str = "background",
        *,
        telemetry: TelemetryPort | None = None,
        max_pending: int = 1000,
    ) -> None:
        self.name = name
        self._telemetry = telemetry
        self._max_pending = max(1, int(max_pending))
        self._tasks: set[asyncio.Task[Any]] = set()
        self._overflow = 0
        self.failures = 0

    @property
    def pending(self) -> int:
        return len(self._tasks)

    def spawn(self, coro: Coroutine[Any, Any, Any], *, label: str) -> asyncio.Task[Any] | None:
        """Schedule *coro*; returns ``None`` when the pool is saturated."""
        if len(self._tasks) >= self._max_pending:
            coro.close()
            self._overflow += 1
            if self._overflow == 1 or self._overflow % 100 == 0:
                logger.warning(
                    f"{self.name} pool saturated: dropped={self._overflow} max={self._max_pending}"
                )
            return None

        task = asyncio.create_task(coro, name=f"{self.name}:{label}")
        self._tasks.add(task)
        task.add_done_callback(self._on_task_done)
        return task

    def _on_task_done(self, task: asyncio.Task[Any]) -> None:
        self._tasks.discard(task)
        if task.cancelled():
            return
        exc = task.exception()
        if exc is not None:
            self.failures += 1
            logger.warning("Background task {} failed: {}", task.get_name(), exc)
            if self._telemetry is not None:
                self._telemetry.incr("background_task_failures_total", labels=(("pool", self.name),))

    async def drain(self, timeout: float | None = None) -> None:
        """Wait for in-flight tasks; leftovers are cancelled after *timeout*."""
        if not self._tasks:
            return
        _, pending = await asyncio.wait(set(self._tasks), timeout=timeout)
        for task in pending:
            task.cancel()
        if pending:
            await asyncio.gather(*pending, return_exceptions=True)
            logger.info(f"{self.name} pool: cancelled {len(pending)} task(s) on drain")
