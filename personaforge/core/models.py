"""Domain models for the reply-decision and delivery core."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Literal, TypeAlias

ReplyMode: TypeAlias = Literal["all", "mention_only"]
MediaKind: TypeAlias = Literal["voice", "photo", "animation", "video_note"]
TurnStatus: TypeAlias = Literal["replied", "suppressed", "pending", "failed"]
DeliveryStatus: TypeAlias = Literal["sent", "partial", "skipped", "aborted"]
MessageFormat: TypeAlias = Literal["markdown_v2"]
ChatAction: TypeAlias = Literal["typing", "cancel"]
MessageId: TypeAlias = str
UserId: TypeAlias = str


@dataclass(frozen=True, slots=True)
class ConversationId:
    """Chat identifier optionally paired with a sub-thread (forum topic)."""

    chat_id: str
    thread_id: str | None = None

    @property
    def key(self) -> str:
        """Stable partition key used by stores and runtime maps."""
        if self.thread_id:
            return f"{self.chat_id}:{self.thread_id}"
        return self.chat_id

    @classmethod
    def from_key(cls, key: str) -> ConversationId:
        chat_id, _, thread_id = key.partition(":")
        return cls(chat_id=chat_id, thread_id=thread_id or None)

    def __str__(self) -> str:
        return self.key


@dataclass(frozen=True, slots=True, kw_only=True)
class MediaPayload:
    """Non-text content attached to an inbound message.

    ``data`` holds raw audio bytes for voice notes; ``frames`` holds
    base64-encoded image frames for photos, GIFs and video notes.
    """

    kind: MediaKind
    data: bytes = b""
    frames: tuple[str, ...] = ()
    file_id: str | None = None


@dataclass(frozen=True, slots=True, kw_only=True)
class InboundMessage:
    """Platform-neutral inbound message consumed by the reply pipeline."""

    conversation: ConversationId
    message_id: MessageId
    text: str
    sender_id: UserId
    sender_name: str = ""
    is_private: bool = False
    is_reply_to_bot: bool = False
    media: MediaPayload | None = None
    received_at: float | None = None


@dataclass(frozen=True, slots=True, kw_only=True)
class SentMessage:
    """Platform acknowledgement of one delivered message."""

    conversation: ConversationId
    message_id: MessageId
    text: str


@dataclass(frozen=True, slots=True, kw_only=True)
class Persona:
    """Active system-prompt identity applied to generated replies."""

    name: str
    system_prompt: str
    display_name: str | None = None
    trigger_keywords: tuple[str, ...] = ()


@dataclass(frozen=True, slots=True, kw_only=True)
class ConversationSettings:
    """Per-conversation reply settings, resolved once per turn."""

    auto_reply_enabled: bool = True
    reply_mode: ReplyMode = "mention_only"
    cooldown_seconds: float = 5.0
    context_depth: int = 10
    memory_enabled: bool = True
    reply_probability: float = 0.0
    trigger_keywords: tuple[str, ...] = ()


@dataclass(frozen=True, slots=True, kw_only=True)
class Turn:
    """One line of recent conversation history."""

    speaker: str
    text: str
    from_self: bool = False


@dataclass(slots=True, kw_only=True)
class PendingBatch:
    """Messages collected for one conversation while a burst is still arriving."""

    messages: list[str] = field(default_factory=list)
    last_arrival: float = 0.0
    user_id: UserId = ""
    user_display_name: str = ""
    reply_to_message_id: MessageId | None = None
    reply_to_bot: bool = False
    has_media: bool = False

    @property
    def text(self) -> str:
        return "\n".join(self.messages)


@dataclass(frozen=True, slots=True, kw_only=True)
class DeliveryReport:
    """Result of one DeliveryScheduler run."""

    status: DeliveryStatus
    sent: tuple[SentMessage, ...] = ()
    failed_chunks: int = 0
    reason: str = ""


@dataclass(frozen=True, slots=True, kw_only=True)
class TurnOutcome:
    """What the reply pipeline did with one inbound message."""

    status: TurnStatus
    reason: str
    report: DeliveryReport | None = None
