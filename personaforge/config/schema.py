"""Configuration schema using Pydantic."""

from pathlib import Path
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field, model_validator
from pydantic_settings import BaseSettings

from personaforge.config.defaults import (
    DEFAULT_CHAT_SETTINGS,
    DEFAULT_HUMANIZE,
    DEFAULT_INFERENCE,
    DEFAULT_MEDIA,
    DEFAULT_MEMORY,
    DEFAULT_PERSONA_PROMPT,
    DEFAULT_REPLY,
)


class IdentityConfig(BaseModel):
    """Account identity and operator settings."""

    model_config = ConfigDict(extra="ignore")

    bot_name: str = "PersonaForge"
    handle: str = ""
    owner_ids: list[str] = Field(default_factory=list)


class PersonaConfig(BaseModel):
    """The single active persona."""

    model_config = ConfigDict(extra="ignore")

    name: str = "default"
    system_prompt: str = DEFAULT_PERSONA_PROMPT
    prompt_file: str | None = None
    display_name: str | None = None
    trigger_keywords: list[str] = Field(default_factory=list)


class ChatSettingsConfig(BaseModel):
    """Reply settings for one chat (or the defaults block)."""

    model_config = ConfigDict(extra="ignore")

    auto_reply_enabled: bool = bool(DEFAULT_CHAT_SETTINGS["auto_reply_enabled"])
    reply_mode: Literal["all", "mention_only"] = DEFAULT_CHAT_SETTINGS["reply_mode"]
    cooldown_seconds: float = Field(default=float(DEFAULT_CHAT_SETTINGS["cooldown_seconds"]), ge=0)
    context_depth: int = Field(default=int(DEFAULT_CHAT_SETTINGS["context_depth"]), ge=0)
    memory_enabled: bool = bool(DEFAULT_CHAT_SETTINGS["memory_enabled"])
    reply_probability: float | None = Field(default=None, ge=0.0, le=1.0)
    trigger_keywords: list[str] = Field(default_factory=list)


class ChatsConfig(BaseModel):
    """Default chat settings plus per-chat overrides keyed by conversation key."""

    model_config = ConfigDict(extra="ignore")

    defaults: ChatSettingsConfig = Field(default_factory=ChatSettingsConfig)
    overrides: dict[str, dict[str, object]] = Field(default_factory=dict)


class InferenceConfig(BaseModel):
    """Ollama-compatible backend and admission settings."""

    model_config = ConfigDict(extra="ignore")

    base_url: str = str(DEFAULT_INFERENCE["base_url"])
    chat_model: str = str(DEFAULT_INFERENCE["chat_model"])
    embedding_model: str = str(DEFAULT_INFERENCE["embedding_model"])
    vision_model: str = str(DEFAULT_INFERENCE["vision_model"])
    temperature: float = Field(default=float(DEFAULT_INFERENCE["temperature"]), ge=0.0, le=2.0)
    max_tokens: int = Field(default=int(DEFAULT_INFERENCE["max_tokens"]), ge=1)
    max_concurrent: int = Field(default=int(DEFAULT_INFERENCE["max_concurrent"]), ge=1)
    timeout_seconds: float = Field(default=float(DEFAULT_INFERENCE["timeout_seconds"]), gt=0)
    request_timeout_seconds: float = Field(
        default=float(DEFAULT_INFERENCE["request_timeout_seconds"]), gt=0
    )
    connect_timeout_seconds: float = Field(
        default=float(DEFAULT_INFERENCE["connect_timeout_seconds"]), gt=0
    )


class ReplyConfig(BaseModel):
    """Debounce, gating and fallback settings for the reply path."""

    model_config = ConfigDict(extra="ignore")

    debounce_ms: int = Field(default=int(DEFAULT_REPLY["debounce_ms"]), ge=0)
    user_burst_limit: int = Field(default=int(DEFAULT_REPLY["user_burst_limit"]), ge=1)
    user_burst_window_seconds: float = Field(
        default=float(DEFAULT_REPLY["user_burst_window_seconds"]), gt=0
    )
    random_reply_probability: float = Field(
        default=float(DEFAULT_REPLY["random_reply_probability"]), ge=0.0, le=1.0
    )
    max_context_messages: int = Field(default=int(DEFAULT_REPLY["max_context_messages"]), ge=1)
    no_reply_token: str = str(DEFAULT_REPLY["no_reply_token"])
    fallback_message: str = str(DEFAULT_REPLY["fallback_message"])
    timeout_fallback_message: str = str(DEFAULT_REPLY["timeout_fallback_message"])
    ignore_older_than_seconds: int = Field(default=int(DEFAULT_REPLY["ignore_older_than_seconds"]), ge=0)
    dedupe_ttl_seconds: int = Field(default=int(DEFAULT_REPLY["dedupe_ttl_seconds"]), ge=1)
    owner_alert_cooldown_seconds: int = Field(
        default=int(DEFAULT_REPLY["owner_alert_cooldown_seconds"]), ge=0
    )


class MemoryConfig(BaseModel):
    """Vector memory retrieval and retention settings."""

    model_config = ConfigDict(extra="ignore")

    enabled: bool = bool(DEFAULT_MEMORY["enabled"])
    db_path: str = str(DEFAULT_MEMORY["db_path"])
    top_n: int = Field(default=int(DEFAULT_MEMORY["top_n"]), ge=0)
    candidate_limit: int = Field(default=int(DEFAULT_MEMORY["candidate_limit"]), ge=1)
    decay_rate: float = Field(default=float(DEFAULT_MEMORY["decay_rate"]), ge=0.0)
    retention_cap: int = Field(default=int(DEFAULT_MEMORY["retention_cap"]), ge=1)
    summary_threshold: int = Field(default=int(DEFAULT_MEMORY["summary_threshold"]), ge=0)
    retention_interval_seconds: int = Field(
        default=int(DEFAULT_MEMORY["retention_interval_seconds"]), ge=1
    )

    @property
    def db_file(self) -> Path:
        return Path(self.db_path).expanduser()


class HumanizeConfig(BaseModel):
    """Typing pacing and delivery jitter."""

    model_config = ConfigDict(extra="ignore")

    typing_speed_cpm: int = Field(default=int(DEFAULT_HUMANIZE["typing_speed_cpm"]), ge=1)
    typing_jitter: float = Field(default=float(DEFAULT_HUMANIZE["typing_jitter"]), ge=0.0, lt=1.0)
    min_typing_seconds: float = Field(default=float(DEFAULT_HUMANIZE["min_typing_seconds"]), ge=0)
    max_typing_seconds: float = Field(default=float(DEFAULT_HUMANIZE["max_typing_seconds"]), ge=0)
    min_response_delay: float = Field(default=float(DEFAULT_HUMANIZE["min_response_delay"]), ge=0)
    max_response_delay: float = Field(default=float(DEFAULT_HUMANIZE["max_response_delay"]), ge=0)
    chunk_delimiter: str = Field(default=str(DEFAULT_HUMANIZE["chunk_delimiter"]), min_length=1)
    min_chunk_pause: float = Field(default=float(DEFAULT_HUMANIZE["min_chunk_pause"]), ge=0)
    max_chunk_pause: float = Field(default=float(DEFAULT_HUMANIZE["max_chunk_pause"]), ge=0)
    distracted_probability: float = Field(
        default=float(DEFAULT_HUMANIZE["distracted_probability"]), ge=0.0, le=1.0
    )
    use_reply_probability: float = Field(
        default=float(DEFAULT_HUMANIZE["use_reply_probability"]), ge=0.0, le=1.0
    )
    typing_refresh_seconds: float = Field(
        default=float(DEFAULT_HUMANIZE["typing_refresh_seconds"]), gt=0
    )
    rich_text: bool = bool(DEFAULT_HUMANIZE["rich_text"])
    seed: int | None = None

    @model_validator(mode="after")
    def _validate_bounds(self) -> "HumanizeConfig":
        for low, high in (
            ("min_typing_seconds", "max_typing_seconds"),
            ("min_response_delay", "max_response_delay"),
            ("min_chunk_pause", "max_chunk_pause"),
        ):
            if getattr(self, low) > getattr(self, high):
                raise ValueError(f"humanize.{low} must not exceed humanize.{high}")
        return self


class MediaConfig(BaseModel):
    """Voice transcription and image description settings."""

    model_config = ConfigDict(extra="ignore")

    transcribe_voice: bool = bool(DEFAULT_MEDIA["transcribe_voice"])
    describe_images: bool = bool(DEFAULT_MEDIA["describe_images"])
    whisper_url: str = str(DEFAULT_MEDIA["whisper_url"])
    whisper_model: str = str(DEFAULT_MEDIA["whisper_model"])
    whisper_api_key: str = str(DEFAULT_MEDIA["whisper_api_key"])
    vision_prompt: str = str(DEFAULT_MEDIA["vision_prompt"])


class Config(BaseSettings):
    """Root configuration for personaforge."""
    model_config = ConfigDict(
        extra="ignore", populate_by_name=True, env_prefix="PERSONAFORGE_", env_nested_delimiter="__"
    )

    config_version: int = 1
    identity: IdentityConfig = Field(default_factory=IdentityConfig)
    persona: PersonaConfig = Field(default_factory=PersonaConfig)
    chats: ChatsConfig = Field(default_factory=ChatsConfig)
    inference: InferenceConfig = Field(default_factory=InferenceConfig)
    reply: ReplyConfig = Field(default_factory=ReplyConfig)
    memory: MemoryConfig = Field(default_factory=MemoryConfig)
    humanize: HumanizeConfig = Field(default_factory=HumanizeConfig)
    media: MediaConfig = Field(default_factory=MediaConfig)
