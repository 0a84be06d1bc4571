"""Port interfaces for collaborators outside the reply core."""

from __future__ import annotations

from typing import Protocol

from personaforge.core.models import (
    ChatAction,
    ConversationId,
    ConversationSettings,
    InboundMessage,
    MessageFormat,
    MessageId,
    Persona,
    SentMessage,
)


class ChatPlatformPort(Protocol):
    """Opaque binding to the messaging platform."""

    async def send_message(
        self,
        conversation: ConversationId,
        text: str,
        *,
        format: MessageFormat | None = None,
        reply_to: MessageId | None = None,
    ) -> SentMessage:
        """Send one message.

        Raises ``FormatRejectedError`` when the platform refuses the markup
        and ``PlatformSendError`` for any other delivery failure.
        """

    async def send_typing_action(
        self,
        conversation: ConversationId,
        *,
        action: ChatAction = "typing",
    ) -> None:
        """Show (``typing``) or clear (``cancel``) the typing indicator."""

    async def edit_message(self, conversation: ConversationId, message_id: MessageId, text: str) -> None:
        """Replace the text of a previously sent message."""

    async def download_file(self, file_id: str) -> bytes:
        """Fetch raw bytes for an attachment."""

    async def answer_callback(self, callback_id: str, text: str | None = None) -> None:
        """Acknowledge an inline-button callback."""

    async def get_updates(self) -> list[InboundMessage]:
        """Return the next batch of inbound messages (may be empty)."""


class SettingsPort(Protocol):
    """Read-only view of persona and per-conversation settings."""

    def get_persona(self) -> Persona:
        """Return the single active persona."""

    def get_settings(self, conversation: ConversationId) -> ConversationSettings:
        """Return settings for one conversation, defaults when unknown."""


class TranscriptionPort(Protocol):
    """Speech-to-text collaborator."""

    async def transcribe(self, audio: bytes) -> str:
        """Return transcript text, empty when nothing was recognised."""


class VisionPort(Protocol):
    """Image description collaborator."""

    async def describe(self, frames_b64: list[str], prompt: str) -> str:
        """Describe one or more base64-encoded frames."""


class OwnerNotifierPort(Protocol):
    """Operator alert channel."""

    async def notify(self, text: str, *, key: str) -> bool:
        """Alert owners; returns False when suppressed by cooldown."""


class SummarizerPort(Protocol):
    """Strategy producing a compact replacement for older memory chunks."""

    async def summarize(self, texts: list[str]) -> str:
        """Return summary text for ``texts`` (oldest first)."""
