import asyncio
import time
from pathlib import Path

import pytest
from conftest import FakeBackend, FakeClock, FakePlatform, make_message, vector_for

from personaforge.app.bootstrap import PersonaRuntime, build_runtime
from personaforge.config.schema import (
    ChatsConfig,
    ChatSettingsConfig,
    Config,
    HumanizeConfig,
    IdentityConfig,
    MediaConfig,
    MemoryConfig,
    PersonaConfig,
)
from personaforge.core.errors import InferenceBackendError, InferenceTimeoutError
from personaforge.prompting.assembler import MEMORY_HEADER
from personaforge.telemetry import InMemoryTelemetry


def _config(*, memory: bool = True, bot_name: str = "NovaBot", **chat_overrides) -> Config:
    chat = {"reply_mode": "all", "reply_probability": 1.0, "cooldown_seconds": 5.0}
    chat.update(chat_overrides)
    return Config(
        identity=IdentityConfig(bot_name=bot_name, owner_ids=["999"]),
        persona=PersonaConfig(name="nova", system_prompt="You are Nova", display_name="Nova"),
        chats=ChatsConfig(defaults=ChatSettingsConfig(**chat)),
        memory=MemoryConfig(enabled=memory),
        humanize=HumanizeConfig(
            use_reply_probability=1.0,
            distracted_probability=0.0,
            rich_text=False,
            seed=11,
        ),
        media=MediaConfig(transcribe_voice=False, describe_images=False),
    )


@pytest.fixture
def runtime_factory(tmp_path: Path, platform: FakePlatform, backend: FakeBackend, clock: FakeClock):
    created: list[PersonaRuntime] = []

    def factory(config: Config, telemetry: InMemoryTelemetry | None = None) -> PersonaRuntime:
        runtime = build_runtime(
            config=config,
            platform=platform,
            backend=backend,
            telemetry=telemetry or InMemoryTelemetry(),
            sleep=clock.sleep,
            clock=clock,
            memory_db=tmp_path / "memory.db",
        )
        created.append(runtime)
        return runtime

    yield factory
    for runtime in created:
        if runtime.memory is not None:
            runtime.memory.store.close()


async def test_nova_end_to_end(runtime_factory, platform: FakePlatform, backend: FakeBackend) -> None:
    telemetry = InMemoryTelemetry()
    runtime = runtime_factory(_config(), telemetry)
    assert runtime.memory is not None
    runtime.memory.store.store("-100", "Alice loves espresso", vector_for("Alice loves espresso"))
    backend.replies = ["Hey Alice! Espresso again?"]

    outcome = await runtime.pipeline.handle(make_message("hi", message_id="1"))
    await runtime.tasks.drain(timeout=5)

    assert outcome.status == "replied"
    prompt = backend.prompts[0]
    assert "You are Nova" in prompt
    assert MEMORY_HEADER in prompt
    assert "- Alice loves espresso" in prompt
    assert "Alice: hi" in prompt
    assert prompt.endswith("Nova:")
    assert platform.sent == [
        {
            "conversation": make_message("hi").conversation,
            "text": "Hey Alice! Espresso again?",
            "format": None,
            "reply_to": "1",
        }
    ]
    assert telemetry.get_counter("pipeline_turns_total", (("outcome", "replied"),)) == 1
    roles = sorted(chunk.role for chunk in runtime.memory.store.load_recent("-100", 10))
    assert roles == ["assistant", "user", "user"]


async def test_memory_block_absent_without_memories(
    runtime_factory, backend: FakeBackend, platform: FakePlatform
) -> None:
    runtime = runtime_factory(_config(memory=False))
    backend.replies = ["hello!"]

    outcome = await runtime.pipeline.handle(make_message("hi"))

    assert outcome.status == "replied"
    assert MEMORY_HEADER not in backend.prompts[0]
    assert platform.texts() == ["hello!"]


async def test_burst_is_answered_once(runtime_factory, backend: FakeBackend, platform: FakePlatform) -> None:
    runtime = runtime_factory(_config(memory=False))
    backend.replies = ["one reply"]

    outcomes = await asyncio.gather(
        runtime.pipeline.handle(make_message("hey", message_id="1")),
        runtime.pipeline.handle(make_message("are you there?", message_id="2")),
    )

    assert sorted(o.status for o in outcomes) == ["pending", "replied"]
    assert len(backend.prompts) == 1
    assert "Alice: hey\nAlice: are you there?" in backend.prompts[0]
    assert platform.sent[0]["reply_to"] == "2"


async def test_mention_only_group_stays_quiet(runtime_factory, backend: FakeBackend, platform: FakePlatform) -> None:
    runtime = runtime_factory(_config(memory=False, reply_mode="mention_only"))

    outcome = await runtime.pipeline.handle(make_message("lunch anyone?"))

    assert (outcome.status, outcome.reason) == ("suppressed", "not_triggered")
    assert backend.prompts == []
    assert platform.sent == []
    turns = await runtime.state.recent_turns(make_message("x").conversation)
    assert [t.text for t in turns] == ["lunch anyone?"]


async def test_private_chat_replies_in_mention_only_mode(
    runtime_factory, backend: FakeBackend, platform: FakePlatform
) -> None:
    runtime = runtime_factory(_config(memory=False, reply_mode="mention_only", reply_probability=0.0))
    backend.replies = ["hi!"]

    outcome = await runtime.pipeline.handle(make_message("hello", chat_id="42", is_private=True))

    assert outcome.status == "replied"
    assert platform.sent[0]["reply_to"] is None


async def test_account_name_mention_replies_in_mention_only_mode(
    runtime_factory, backend: FakeBackend, platform: FakePlatform
) -> None:
    runtime = runtime_factory(_config(memory=False, bot_name="Puppeteer", reply_mode="mention_only"))
    backend.replies = ["right here"]

    outcome = await runtime.pipeline.handle(make_message("hey Puppeteer, you there?"))

    assert outcome.status == "replied"
    assert platform.texts() == ["right here"]


async def test_duplicate_and_cooldown_suppression(runtime_factory, backend: FakeBackend) -> None:
    runtime = runtime_factory(_config(memory=False, cooldown_seconds=3600.0))
    backend.replies = ["first", "second"]

    first = await runtime.pipeline.handle(make_message("hi", message_id="1"))
    duplicate = await runtime.pipeline.handle(make_message("hi", message_id="1"))
    cooled = await runtime.pipeline.handle(make_message("again", message_id="2"))

    assert first.status == "replied"
    assert (duplicate.status, duplicate.reason) == ("suppressed", "duplicate")
    assert (cooled.status, cooled.reason) == ("suppressed", "cooldown")
    assert len(backend.prompts) == 1


async def test_stale_backlog_is_dropped(runtime_factory, backend: FakeBackend) -> None:
    runtime = runtime_factory(_config(memory=False))

    outcome = await runtime.pipeline.handle(make_message("old news", received_at=time.time() - 3600))

    assert (outcome.status, outcome.reason) == ("suppressed", "stale")
    assert backend.prompts == []


async def test_sentinel_reply_sends_nothing(runtime_factory, backend: FakeBackend, platform: FakePlatform) -> None:
    runtime = runtime_factory(_config())
    backend.replies = ["NO_REPLY"]

    outcome = await runtime.pipeline.handle(make_message("ok cool"))
    await runtime.tasks.drain(timeout=5)

    assert (outcome.status, outcome.reason) == ("suppressed", "no_reply_token")
    assert platform.sent == []
    assert [c.role for c in runtime.memory.store.load_recent("-100", 10)] == ["user"]


async def test_inference_timeout_sends_fallback_and_alerts_owner(
    runtime_factory, backend: FakeBackend, platform: FakePlatform
) -> None:
    config = _config(memory=False)
    runtime = runtime_factory(config)
    backend.error = InferenceTimeoutError(120)

    outcome = await runtime.pipeline.handle(make_message("hi", message_id="7"))

    assert (outcome.status, outcome.reason) == ("failed", "inference_timeout")
    by_chat = {item["conversation"].key: item for item in platform.sent}
    assert by_chat["999"]["text"].startswith("⚠️ Reply generation failed")
    assert by_chat["-100"]["text"] == config.reply.timeout_fallback_message
    assert by_chat["-100"]["reply_to"] == "7"


async def test_backend_error_alerts_are_rate_limited(
    runtime_factory, backend: FakeBackend, platform: FakePlatform, clock: FakeClock
) -> None:
    runtime = runtime_factory(_config(memory=False, cooldown_seconds=0.0))
    backend.error = InferenceBackendError("HTTP 500: boom", status_code=500)

    first = await runtime.pipeline.handle(make_message("hi", message_id="1"))
    second = await runtime.pipeline.handle(make_message("hello?", message_id="2"))

    assert first.reason == second.reason == "inference_error"
    owner_alerts = [item for item in platform.sent if item["conversation"].key == "999"]
    fallbacks = [item for item in platform.sent if item["conversation"].key == "-100"]
    assert len(owner_alerts) == 1
    assert [item["text"] for item in fallbacks] == ["Sorry, I can't answer right now."] * 2


async def test_auto_reply_disabled_still_records_history(runtime_factory, backend: FakeBackend) -> None:
    runtime = runtime_factory(_config(memory=False, auto_reply_enabled=False))

    outcome = await runtime.pipeline.handle(make_message("talking among ourselves"))

    assert (outcome.status, outcome.reason) == ("suppressed", "auto_reply_disabled")
    assert backend.prompts == []
    turns = await runtime.state.recent_turns(make_message("x").conversation)
    assert len(turns) == 1
