from personaforge.core.models import Persona, Turn
from personaforge.prompting.assembler import CONVERSATION_HEADER, MEMORY_HEADER, PromptAssembler

PERSONA = Persona(name="nova", system_prompt="You are Nova, a witty barista.\n", display_name="Nova")


def test_prompt_sections_in_order() -> None:
    history = [
        Turn(speaker="Alice", text="morning!"),
        Turn(speaker="Nova", text="hey Alice", from_self=True),
        Turn(speaker="Alice", text="coffee?\nplease"),
    ]

    prompt = PromptAssembler().build(PERSONA, ["Alice likes oat milk"], history, "Nova")

    assert prompt.startswith('Your name is "Nova".')
    persona_at = prompt.index("You are Nova, a witty barista.")
    memory_at = prompt.index(MEMORY_HEADER)
    convo_at = prompt.index(CONVERSATION_HEADER)
    assert persona_at < memory_at < convo_at
    assert "- Alice likes oat milk" in prompt
    assert "Alice: coffee? please" in prompt
    assert prompt.endswith("\n\nNova:")


def test_memory_block_omitted_when_empty() -> None:
    prompt = PromptAssembler().build(PERSONA, ["  "], [Turn(speaker="Bob", text="hi")], "Nova")
    assert MEMORY_HEADER not in prompt
    assert "Bob: hi" in prompt


def test_context_depth_limits_history() -> None:
    history = [Turn(speaker="Bob", text=f"line {i}") for i in range(6)]
    assembler = PromptAssembler(default_context_depth=4)

    prompt = assembler.build(PERSONA, [], history, "Nova", context_depth=2)
    default_prompt = assembler.build(PERSONA, [], history, "Nova")
    no_history = assembler.build(PERSONA, [], history, "Nova", context_depth=0)

    assert "line 3" not in prompt and "line 4" in prompt and "line 5" in prompt
    assert "line 1" not in default_prompt and "line 2" in default_prompt
    assert CONVERSATION_HEADER not in no_history


def test_build_is_deterministic() -> None:
    history = [Turn(speaker="Bob", text="hi")]
    assembler = PromptAssembler()
    assert assembler.build(PERSONA, ["m"], history, "Nova") == assembler.build(
        PERSONA, ["m"], history, "Nova"
    )


def test_persona_prompt_is_rendered_verbatim() -> None:
    prompt = PromptAssembler().build(PERSONA, ["Alice likes oat milk"], [], "Nova")
    assert PERSONA.system_prompt + "\n\n" + MEMORY_HEADER in prompt
