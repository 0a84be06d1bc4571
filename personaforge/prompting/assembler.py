"""Render persona, recalled memories and recent turns into one prompt."""

from __future__ import annotations

from collections.abc import Sequence

from personaforge.core.models import Persona, Turn

MEMORY_HEADER = "### Relevant Past Memories (for context):"
CONVERSATION_HEADER = "### Current Conversation:"

IDENTITY_PREAMBLE = (
    'Your name is "{name}". This is your own name: use it when you introduce '
    "yourself or when someone asks what you are called, and answer to it when "
    "people address you."
)


class PromptAssembler:
    """Deterministic prompt template.

    Sections, in order: identity preamble, persona prompt, optional memory
    block, conversation lines (oldest first) and a trailing ``name:`` cue.
    """

    def __init__(self, *, default_context_depth: int = 10) -> None:
        self.default_context_depth = max(0, int(default_context_depth))

    def build(
        self,
        persona: Persona,
        memories: Sequence[str],
        history: Sequence[Turn],
        identity_name: str,
        *,
        context_depth: int | None = None,
    ) -> str:
        depth = self.default_context_depth if context_depth is None else max(0, int(context_depth))
        sections = [
            IDENTITY_PREAMBLE.format(name=identity_name),
            persona.system_prompt,
        ]

        memory_lines = [f"- {text.strip()}" for text in memories if text.strip()]
        if memory_lines:
            sections.append("\n".join([MEMORY_HEADER, *memory_lines]))

        turns = list(history)[-depth:] if depth else []
        if turns:
            lines = [self._render_turn(turn) for turn in turns]
            sections.append("\n".join([CONVERSATION_HEADER, *lines]))

        sections.append(f"{identity_name}:")
        return "\n\n".join(section for section in sections if section)

    @staticmethod
    def _render_turn(turn: Turn) -> str:
        text = " ".join(turn.text.split("\n")).strip()
        return f"{turn.speaker}: {text}"
