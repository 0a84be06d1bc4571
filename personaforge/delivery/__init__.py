"""Humanized reply delivery."""

from personaforge.delivery.humanize import polish_reply, split_chunks, typing_seconds
from personaforge.delivery.markdown import escape_markdown_v2
from personaforge.delivery.scheduler import DeliveryScheduler

__all__ = [
    "DeliveryScheduler",
    "escape_markdown_v2",
    "polish_reply",
    "split_chunks",
    "typing_seconds",
]
