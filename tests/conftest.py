from __future__ import annotations

import asyncio
from typing import Any

import pytest

from personaforge.core.errors import FormatRejectedError, InferenceError, PlatformSendError
from personaforge.core.models import ConversationId, InboundMessage, SentMessage
from personaforge.telemetry import InMemoryTelemetry


class FakeClock:
    """Manual clock whose ``sleep`` advances time instead of waiting."""

    def __init__(self, start: float = 0.0) -> None:
        self.now = start
        self.sleeps: list[float] = []

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds

    async def sleep(self, seconds: float) -> None:
        self.sleeps.append(seconds)
        self.now += seconds
        await asyncio.sleep(0)


class FakePlatform:
    def __init__(self) -> None:
        self.sent: list[dict[str, Any]] = []
        self.actions: list[tuple[str, str]] = []
        self.updates: list[list[InboundMessage]] = []
        self.files: dict[str, bytes] = {}
        self.reject_format = False
        self.fail_texts: set[str] = set()
        self._next_id = 100

    async def send_message(
        self,
        conversation: ConversationId,
        text: str,
        *,
        format: str | None = None,
        reply_to: str | None = None,
    ) -> SentMessage:
        if format is not None and self.reject_format:
            raise FormatRejectedError("can't parse entities")
        if text in self.fail_texts:
            raise PlatformSendError(f"send failed: {text}")
        self._next_id += 1
        self.sent.append(
            {"conversation": conversation, "text": text, "format": format, "reply_to": reply_to}
        )
        return SentMessage(conversation=conversation, message_id=str(self._next_id), text=text)

    async def send_typing_action(self, conversation: ConversationId, *, action: str = "typing") -> None:
        self.actions.append((conversation.key, action))

    async def edit_message(self, conversation: ConversationId, message_id: str, text: str) -> None:
        return None

    async def download_file(self, file_id: str) -> bytes:
        return self.files.get(file_id, b"")

    async def answer_callback(self, callback_id: str, text: str | None = None) -> None:
        return None

    async def get_updates(self) -> list[InboundMessage]:
        if self.updates:
            return self.updates.pop(0)
        return []

    def texts(self) -> list[str]:
        return [item["text"] for item in self.sent]


def vector_for(text: str) -> list[float]:
    """Deterministic toy embedding: character counts plus a bias term."""
    folded = text.casefold()
    return [float(folded.count(ch)) for ch in "aeiounst"] + [1.0]


class FakeBackend:
    """Inference backend returning scripted replies and toy embeddings."""

    def __init__(self, replies: list[str] | None = None) -> None:
        self.replies = list(replies or [])
        self.prompts: list[str] = []
        self.images: list[list[str] | None] = []
        self.embedded: list[str] = []
        self.error: InferenceError | None = None
        self.embed_error: InferenceError | None = None

    async def generate(
        self,
        model: str,
        prompt: str,
        *,
        temperature: float = 0.7,
        max_tokens: int = 2048,
        images: list[str] | None = None,
    ) -> str:
        self.prompts.append(prompt)
        self.images.append(images)
        if self.error is not None:
            raise self.error
        return self.replies.pop(0) if self.replies else "ok"

    async def embed(self, model: str, text: str) -> list[float]:
        self.embedded.append(text)
        if self.embed_error is not None:
            raise self.embed_error
        return vector_for(text)


def make_message(
    text: str,
    *,
    chat_id: str = "-100",
    message_id: str = "1",
    sender_id: str = "u1",
    sender_name: str = "Alice",
    is_private: bool = False,
    is_reply_to_bot: bool = False,
    **kwargs: Any,
) -> InboundMessage:
    return InboundMessage(
        conversation=ConversationId(chat_id),
        message_id=message_id,
        text=text,
        sender_id=sender_id,
        sender_name=sender_name,
        is_private=is_private,
        is_reply_to_bot=is_reply_to_bot,
        **kwargs,
    )


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def platform() -> FakePlatform:
    return FakePlatform()


@pytest.fixture
def backend() -> FakeBackend:
    return FakeBackend()


@pytest.fixture
def telemetry() -> InMemoryTelemetry:
    return InMemoryTelemetry()


@pytest.fixture(autouse=True)
def isolated_home(tmp_path, monkeypatch: pytest.MonkeyPatch):
    home = tmp_path / "home"
    monkeypatch.setenv("PERSONAFORGE_HOME", str(home))
    return home
