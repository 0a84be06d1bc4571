"""Prompt rendering."""

from personaforge.prompting.assembler import PromptAssembler

__all__ = ["PromptAssembler"]
