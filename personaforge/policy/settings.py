"""Persona and per-conversation settings resolved from configuration."""

from __future__ import annotations

from pathlib import Path

from loguru import logger

from personaforge.config.schema import ChatSettingsConfig, Config
from personaforge.core.models import ConversationId, ConversationSettings, Persona


def load_persona_text(prompt_file: str | None) -> str | None:
    """Load a persona prompt from disk. Missing files are warned and ignored."""
    if not prompt_file:
        return None
    path = Path(prompt_file).expanduser()
    if not path.exists():
        logger.warning(f"persona file not found: {path}")
        return None
    if not path.is_file():
        logger.warning(f"persona path is not a file: {path}")
        return None
    return path.read_text(encoding="utf-8").strip() or None


class ConfigSettingsProvider:
    """Read-only ``SettingsPort`` backed by the loaded config.

    Overrides are keyed by conversation key; a thread key
    (``chat:thread``) falls back to its chat key, then to ``chats.defaults``.
    """

    def __init__(self, config: Config) -> None:
        self._config = config
        self._persona: Persona | None = None
        self._cache: dict[str, ConversationSettings] = {}

    def get_persona(self) -> Persona:
        if self._persona is None:
            cfg = self._config.persona
            prompt = load_persona_text(cfg.prompt_file) or cfg.system_prompt
            self._persona = Persona(
                name=cfg.name,
                system_prompt=prompt,
                display_name=cfg.display_name,
                trigger_keywords=tuple(cfg.trigger_keywords),
            )
        return self._persona

    def get_settings(self, conversation: ConversationId) -> ConversationSettings:
        cached = self._cache.get(conversation.key)
        if cached is not None:
            return cached
        settings = self._resolve(conversation)
        self._cache[conversation.key] = settings
        return settings

    def invalidate(self) -> None:
        self._persona = None
        self._cache.clear()

    def _resolve(self, conversation: ConversationId) -> ConversationSettings:
        chats = self._config.chats
        merged = chats.defaults.model_dump()
        for key in (conversation.chat_id, conversation.key):
            override = chats.overrides.get(key)
            if override:
                merged.update(override)
        cfg = ChatSettingsConfig.model_validate(merged)
        probability = cfg.reply_probability
        if probability is None:
            probability = self._config.reply.random_reply_probability
        return ConversationSettings(
            auto_reply_enabled=cfg.auto_reply_enabled,
            reply_mode=cfg.reply_mode,
            cooldown_seconds=cfg.cooldown_seconds,
            context_depth=cfg.context_depth,
            memory_enabled=cfg.memory_enabled,
            reply_probability=probability,
            trigger_keywords=tuple(cfg.trigger_keywords),
        )
