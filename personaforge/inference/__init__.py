"""Inference backend client and admission-controlled queue."""

from personaforge.inference.client import OllamaClient
from personaforge.inference.queue import EmbedStats, InferenceBackend, InferenceQueue, QueueStats

__all__ = ["EmbedStats", "InferenceBackend", "InferenceQueue", "OllamaClient", "QueueStats"]
