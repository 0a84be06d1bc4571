import json
from pathlib import Path

import pytest

from personaforge.config.loader import (
    camel_to_snake,
    convert_keys,
    get_config_path,
    load_config,
    save_config,
    snake_to_camel,
)
from personaforge.config.schema import ChatsConfig, ChatSettingsConfig, Config, PersonaConfig
from personaforge.core.models import ConversationId
from personaforge.policy.settings import ConfigSettingsProvider


def test_key_case_helpers() -> None:
    assert camel_to_snake("ownerIds") == "owner_ids"
    assert snake_to_camel("reply_probability") == "replyProbability"
    assert convert_keys({"chatModel": "x", "list": [{"topN": 1}]}) == {
        "chat_model": "x",
        "list": [{"top_n": 1}],
    }


def test_default_path_follows_home(isolated_home: Path) -> None:
    assert get_config_path() == isolated_home / "config.json"


def test_save_and_load_roundtrip(tmp_path: Path) -> None:
    path = tmp_path / "config.json"
    config = Config()
    config.persona.display_name = "Nova"
    config.inference.chat_model = "llama3.2:3b"
    config.chats.overrides["-100:7"] = {"reply_mode": "mention_only"}

    save_config(config, path)
    raw = json.loads(path.read_text())
    loaded = load_config(path)

    assert raw["persona"]["displayName"] == "Nova"
    assert raw["chats"]["overrides"]["-100:7"] == {"replyMode": "mention_only"}
    assert loaded.persona.display_name == "Nova"
    assert loaded.inference.chat_model == "llama3.2:3b"
    assert loaded.chats.overrides["-100:7"] == {"reply_mode": "mention_only"}


def test_legacy_root_owner_ids_are_migrated(tmp_path: Path) -> None:
    path = tmp_path / "config.json"
    path.write_text(json.dumps({"ownerIds": [12345], "persona": {"name": "nova"}}))

    config = load_config(path)

    assert config.identity.owner_ids == ["12345"]
    assert config.persona.name == "nova"
    rewritten = json.loads(path.read_text())
    assert "ownerIds" not in rewritten
    assert rewritten["configVersion"] == 1
    assert rewritten["identity"]["ownerIds"] == ["12345"]
    assert len(list(tmp_path.glob("config.backup.*.json"))) == 1


def test_broken_file_falls_back_to_defaults(tmp_path: Path) -> None:
    path = tmp_path / "config.json"
    path.write_text("{not json")
    assert load_config(path).reply.debounce_ms == Config().reply.debounce_ms


def test_missing_file_gives_defaults(tmp_path: Path) -> None:
    config = load_config(tmp_path / "absent.json")
    assert config.chats.defaults.reply_mode == "mention_only"
    assert config.reply.no_reply_token == "NO_REPLY"


def test_environment_overrides_nested_fields(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("PERSONAFORGE_INFERENCE__CHAT_MODEL", "qwen2.5:7b")
    monkeypatch.setenv("PERSONAFORGE_REPLY__DEBOUNCE_MS", "800")

    config = Config()

    assert config.inference.chat_model == "qwen2.5:7b"
    assert config.reply.debounce_ms == 800


def test_invalid_values_are_rejected() -> None:
    with pytest.raises(ValueError):
        ChatSettingsConfig(reply_probability=1.5)
    with pytest.raises(ValueError):
        ChatSettingsConfig(reply_mode="sometimes")


# ── Settings provider ────────────────────────────────────────────────


def test_overrides_merge_chat_then_thread() -> None:
    config = Config(
        chats=ChatsConfig(
            defaults=ChatSettingsConfig(cooldown_seconds=10, context_depth=8),
            overrides={
                "-100": {"reply_mode": "all", "cooldown_seconds": 30},
                "-100:7": {"cooldown_seconds": 2},
            },
        )
    )
    provider = ConfigSettingsProvider(config)

    chat = provider.get_settings(ConversationId("-100"))
    thread = provider.get_settings(ConversationId("-100", "7"))
    other = provider.get_settings(ConversationId("-200"))

    assert (chat.reply_mode, chat.cooldown_seconds, chat.context_depth) == ("all", 30, 8)
    assert (thread.reply_mode, thread.cooldown_seconds) == ("all", 2)
    assert (other.reply_mode, other.cooldown_seconds) == ("mention_only", 10)


def test_reply_probability_falls_back_to_global() -> None:
    config = Config()
    config.reply.random_reply_probability = 0.25
    config.chats.overrides["-5"] = {"reply_probability": 0.9}
    provider = ConfigSettingsProvider(config)

    assert provider.get_settings(ConversationId("-1")).reply_probability == 0.25
    assert provider.get_settings(ConversationId("-5")).reply_probability == 0.9


def test_persona_prompt_file_wins_over_inline(tmp_path: Path) -> None:
    prompt_file = tmp_path / "nova.md"
    prompt_file.write_text("You are Nova, from a file.\n")
    config = Config(
        persona=PersonaConfig(
            name="nova",
            system_prompt="inline",
            prompt_file=str(prompt_file),
            trigger_keywords=["coffee"],
        )
    )

    persona = ConfigSettingsProvider(config).get_persona()

    assert persona.system_prompt == "You are Nova, from a file."
    assert persona.trigger_keywords == ("coffee",)


def test_missing_persona_file_uses_inline_prompt(tmp_path: Path) -> None:
    config = Config(persona=PersonaConfig(system_prompt="inline", prompt_file=str(tmp_path / "nope.md")))
    assert ConfigSettingsProvider(config).get_persona().system_prompt == "inline"
