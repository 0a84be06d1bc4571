"""Centralized defaults for generated/migrated config files."""

from __future__ import annotations

from copy import deepcopy
from typing import Any

DEFAULT_PERSONA_PROMPT = "You are a helpful AI assistant."
DEFAULT_CHAT_MODEL = "gemma2:2b"
DEFAULT_EMBEDDING_MODEL = "nomic-embed-text"
DEFAULT_VISION_MODEL = "llava:latest"
NO_REPLY_TOKEN = "NO_REPLY"

DEFAULT_INFERENCE: dict[str, Any] = {
    "base_url": "http://localhost:11434",
    "chat_model": DEFAULT_CHAT_MODEL,
    "embedding_model": DEFAULT_EMBEDDING_MODEL,
    "vision_model": DEFAULT_VISION_MODEL,
    "temperature": 0.7,
    "max_tokens": 2048,
    "max_concurrent": 3,
    "timeout_seconds": 120.0,
    "request_timeout_seconds": 180.0,
    "connect_timeout_seconds": 10.0,
}

DEFAULT_CHAT_SETTINGS: dict[str, Any] = {
    "auto_reply_enabled": True,
    "reply_mode": "mention_only",
    "cooldown_seconds": 5.0,
    "context_depth": 10,
    "memory_enabled": True,
    "reply_probability": None,
    "trigger_keywords": [],
}

DEFAULT_REPLY: dict[str, Any] = {
    "debounce_ms": 1500,
    "user_burst_limit": 5,
    "user_burst_window_seconds": 60.0,
    "random_reply_probability": 0.0,
    "max_context_messages": 20,
    "no_reply_token": NO_REPLY_TOKEN,
    "fallback_message": "Sorry, I can't answer right now.",
    "timeout_fallback_message": "Sorry, that took too long. Try again in a moment.",
    "ignore_older_than_seconds": 300,
    "dedupe_ttl_seconds": 1200,
    "owner_alert_cooldown_seconds": 300,
}

DEFAULT_MEMORY: dict[str, Any] = {
    "enabled": True,
    "db_path": "~/.personaforge/memory/memory.db",
    "top_n": 3,
    "candidate_limit": 100,
    "decay_rate": 0.1,
    "retention_cap": 1000,
    "summary_threshold": 50,
    "retention_interval_seconds": 3600,
}

DEFAULT_HUMANIZE: dict[str, Any] = {
    "typing_speed_cpm": 200,
    "typing_jitter": 0.2,
    "min_typing_seconds": 1.0,
    "max_typing_seconds": 30.0,
    "min_response_delay": 2.0,
    "max_response_delay": 15.0,
    "chunk_delimiter": "||",
    "min_chunk_pause": 0.5,
    "max_chunk_pause": 1.5,
    "distracted_probability": 0.2,
    "use_reply_probability": 0.7,
    "typing_refresh_seconds": 4.5,
    "rich_text": True,
    "seed": None,
}

DEFAULT_MEDIA: dict[str, Any] = {
    "transcribe_voice": True,
    "describe_images": True,
    "whisper_url": "https://api.openai.com/v1/audio/transcriptions",
    "whisper_model": "whisper-1",
    "whisper_api_key": "",
    "vision_prompt": "Describe this image briefly in one or two sentences.",
}


def _merge_missing(target: dict[str, Any], defaults: dict[str, Any]) -> None:
    for key, value in defaults.items():
        if key not in target:
            target[key] = deepcopy(value)
            continue
        current = target[key]
        if isinstance(current, dict) and isinstance(value, dict):
            _merge_missing(current, value)


def apply_missing_defaults(data: dict[str, Any]) -> None:
    """Fill in missing sections of a snake_case config payload in place."""
    for section, defaults in (
        ("inference", DEFAULT_INFERENCE),
        ("reply", DEFAULT_REPLY),
        ("memory", DEFAULT_MEMORY),
        ("humanize", DEFAULT_HUMANIZE),
        ("media", DEFAULT_MEDIA),
    ):
        current = data.get(section)
        if not isinstance(current, dict):
            current = {}
            data[section] = current
        _merge_missing(current, defaults)

    chats = data.get("chats")
    if not isinstance(chats, dict):
        chats = {}
        data["chats"] = chats
    chat_defaults = chats.get("defaults")
    if not isinstance(chat_defaults, dict):
        chat_defaults = {}
        chats["defaults"] = chat_defaults
    _merge_missing(chat_defaults, DEFAULT_CHAT_SETTINGS)
