"""Admission-controlled gateway to the inference backend."""

from __future__ import annotations

import asyncio
import time
from collections.abc import Callable
from dataclasses import dataclass, replace
from typing import Literal, Protocol, TypeAlias

from loguru import logger

from personaforge.core.errors import InferenceError, InferenceTimeoutError
from personaforge.telemetry.base import TelemetryPort

CallStatus: TypeAlias = Literal["ok", "failed", "timeout"]


class InferenceBackend(Protocol):
    """What the queue needs from a backend client (see ``OllamaClient``)."""

    async def generate(
        self,
        model: str,
        prompt: str,
        *,
        temperature: float = 0.7,
        max_tokens: int = 2048,
        images: list[str] | None = None,
    ) -> str: ...

    async def embed(self, model: str, text: str) -> list[float]: ...


@dataclass(slots=True)
class QueueStats:
    """Process-wide generation counters; latency averages successes only."""

    total: int = 0
    succeeded: int = 0
    failed: int = 0
    timeouts: int = 0
    avg_latency_ms: float = 0.0
    in_flight: int = 0
    peak_in_flight: int = 0


@dataclass(slots=True)
class EmbedStats:
    count: int = 0
    failed: int = 0
    avg_latency_ms: float = 0.0


class InferenceQueue:
    """Bounds concurrent generations with one shared semaphore.

    Callers beyond the limit wait for a permit; nobody is rejected. The
    timeout covers the backend call only, not the wait for a permit.
    """

    def __init__(
        self,
        backend: InferenceBackend,
        *,
        max_concurrent: int = 3,
        default_timeout: float = 120.0,
        telemetry: TelemetryPort | None = None,
        clock: Callable[[], float] = time.perf_counter,
    ) -> None:
        self._backend = backend
        self.max_concurrent = max(1, int(max_concurrent))
        self.default_timeout = float(default_timeout)
        self._telemetry = telemetry
        self._clock = clock
        self._semaphore = asyncio.Semaphore(self.max_concurrent)
        self._stats_lock = asyncio.Lock()
        self._stats = QueueStats()
        self._embed_stats = EmbedStats()

    @property
    def available_permits(self) -> int:
        return self.max_concurrent - self._stats.in_flight

    async def stats(self) -> QueueStats:
        async with self._stats_lock:
            return replace(self._stats)

    async def embed_stats(self) -> EmbedStats:
        async with self._stats_lock:
            return replace(self._embed_stats)

    async def generate(
        self,
        model: str,
        prompt: str,
        *,
        temperature: float = 0.7,
        max_tokens: int = 2048,
        timeout: float | None = None,
        images: list[str] | None = None,
    ) -> str:
        """Run one generation under a permit.

        Raises:
            InferenceTimeoutError: the backend call exceeded *timeout*.
            InferenceBackendError: network failure or non-success response.
        """
        deadline = self.default_timeout if timeout is None else float(timeout)
        async with self._semaphore:
            await self._enter()
            started = self._clock()
            status: CallStatus = "failed"
            try:
                text = await asyncio.wait_for(
                    self._backend.generate(
                        model,
                        prompt,
                        temperature=temperature,
                        max_tokens=max_tokens,
                        images=images,
                    ),
                    timeout=deadline,
                )
                status = "ok"
                return text
            except TimeoutError as exc:
                status = "timeout"
                raise InferenceTimeoutError(deadline) from exc
            except InferenceTimeoutError:
                status = "timeout"
                raise
            except InferenceError as exc:
                logger.warning("Inference call to {} failed: {}", model, exc)
                raise
            finally:
                await self._complete(status, self._clock() - started, model)

    async def describe(
        self,
        model: str,
        prompt: str,
        images: list[str],
        *,
        timeout: float | None = None,
        max_tokens: int = 300,
    ) -> str:
        """Vision generation; shares the generation permits."""
        return await self.generate(
            model,
            prompt,
            temperature=0.2,
            max_tokens=max_tokens,
            timeout=timeout,
            images=images,
        )

    async def embed(self, model: str, text: str) -> list[float]:
        """Embed *text* without taking a permit."""
        started = self._clock()
        try:
            vector = await self._backend.embed(model, text)
        except InferenceError:
            async with self._stats_lock:
                self._embed_stats.failed += 1
            raise
        elapsed = self._clock() - started
        async with self._stats_lock:
            stats = self._embed_stats
            stats.count += 1
            stats.avg_latency_ms += (elapsed * 1000.0 - stats.avg_latency_ms) / stats.count
        if self._telemetry is not None:
            self._telemetry.timing("embedding_latency_seconds", elapsed)
        return vector

    # ── Internals ────────────────────────────────────────────────────

    async def _enter(self) -> None:
        async with self._stats_lock:
            self._stats.in_flight += 1
            self._stats.peak_in_flight = max(self._stats.peak_in_flight, self._stats.in_flight)
            in_flight = self._stats.in_flight
        if self._telemetry is not None:
            self._telemetry.gauge("inference_in_flight", float(in_flight))

    async def _complete(self, status: CallStatus, elapsed: float, model: str) -> None:
        async with self._stats_lock:
            stats = self._stats
            stats.in_flight -= 1
            stats.total += 1
            if status == "ok":
                stats.succeeded += 1
                stats.avg_latency_ms += (elapsed * 1000.0 - stats.avg_latency_ms) / stats.succeeded
            elif status == "timeout":
                stats.timeouts += 1
            else:
                stats.failed += 1
            in_flight = stats.in_flight
        if self._telemetry is not None:
            self._telemetry.gauge("inference_in_flight", float(in_flight))
            self._telemetry.incr("inference_requests_total", labels=(("status", status),))
            if status == "ok":
                self._telemetry.timing("inference_latency_seconds", elapsed, labels=(("model", model),))
