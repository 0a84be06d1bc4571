"""Telemetry backends."""

from personaforge.telemetry.base import TelemetryPort
from personaforge.telemetry.inmemory import InMemoryTelemetry

__all__ = ["InMemoryTelemetry", "TelemetryPort"]
