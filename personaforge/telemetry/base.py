"""Telemetry port protocol."""

from __future__ import annotations

from typing import Protocol, runtime_checkable, TypeAlias

Labels: TypeAlias = tuple[tuple[str, str], ...]


@runtime_checkable
class TelemetryPort(Protocol):
    """Protocol for telemetry backends.

    - Counters: turns by outcome, inference requests, delivered chunks
    - Gauges: in-flight inference calls, pending background tasks
    - Histograms: prompt size, recalled memory count
    - Timing: inference and embedding latency
    """

    def incr(self, name: str, value: int = 1, labels: Labels = ()) -> None:
        """Increase a named counter by ``value``.

        Args:
            name: Metric name (e.g., "pipeline_turns_total")
            value: Amount to increment (default 1)
            labels: Optional label tuples (e.g., (("outcome", "replied"),))
        """

    def gauge(self, name: str, value: float, labels: Labels = ()) -> None:
        """Set a gauge value."""

    def histogram(self, name: str, value: float, labels: Labels = ()) -> None:
        """Observe a histogram value."""

    def timing(self, name: str, value: float, labels: Labels = ()) -> None:
        """Record the duration of an operation in seconds."""
