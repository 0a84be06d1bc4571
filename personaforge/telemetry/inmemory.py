"""In-memory telemetry backend.

Default backend for a single process; tests inspect it directly.
"""

from __future__ import annotations

from collections import Counter, defaultdict
from dataclasses import dataclass, field

from personaforge.telemetry.base import Labels


@dataclass
class InMemoryTelemetry:
    """Keeps every metric in process memory, keyed by name and labels."""

    counters: dict[str, Counter] = field(default_factory=lambda: defaultdict(Counter))
    gauges: dict[str, float] = field(default_factory=dict)
    histograms: dict[str, list[float]] = field(default_factory=lambda: defaultdict(list))
    timings: dict[str, list[float]] = field(default_factory=lambda: defaultdict(list))

    def incr(self, name: str, value: int = 1, labels: Labels = ()) -> None:
        key = self._make_key(name, labels)
        self.counters[key][name] += value

    def gauge(self, name: str, value: float, labels: Labels = ()) -> None:
        self.gauges[self._make_key(name, labels)] = value

    def histogram(self, name: str, value: float, labels: Labels = ()) -> None:
        self.histograms[self._make_key(name, labels)].append(value)

    def timing(self, name: str, value: float, labels: Labels = ()) -> None:
        self.timings[self._make_key(name, labels)].append(value)

    def snapshot(self) -> dict[str, float]:
        """Flatten counters, gauges and mean timings for display."""
        flat: dict[str, float] = {}
        for key, counter in self.counters.items():
            flat[key] = float(sum(counter.values()))
        flat.update(self.gauges)
        for key, values in self.timings.items():
            if values:
                flat[f"{key}.avg"] = sum(values) / len(values)
        return dict(sorted(flat.items()))

    @staticmethod
    def _make_key(name: str, labels: Labels | None) -> str:
        if not labels:
            return name
        label_str = ",".join(f"{k}={v}" for k, v in labels)
        return f"{name}{{{label_str}}}"

    # ── Test helpers ─────────────────────────────────────────────────────

    def get_counter(self, name: str, labels: Labels = ()) -> int:
        key = self._make_key(name, labels)
        return int(self.counters[key][name])

    def get_gauge(self, name: str, labels: Labels = ()) -> float | None:
        return self.gauges.get(self._make_key(name, labels))

    def get_timing_values(self, name: str, labels: Labels = ()) -> list[float]:
        return list(self.timings[self._make_key(name, labels)])

    def reset(self) -> None:
        self.counters.clear()
        self.gauges.clear()
        self.histograms.clear()
        self.timings.clear()
