"""Reply pipeline middleware."""

from personaforge.pipeline.reply import ReplyPipeline

__all__ = ["ReplyPipeline"]
