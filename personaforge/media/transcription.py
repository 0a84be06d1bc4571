"""Voice transcription via an OpenAI-compatible Whisper endpoint."""

from __future__ import annotations

import os

import httpx
from loguru import logger


class WhisperTranscriber:
    """Upload raw audio as multipart form data and return the transcript."""

    def __init__(
        self,
        api_url: str = "https://api.openai.com/v1/audio/transcriptions",
        *,
        api_key: str | None = None,
        model: str = "whisper-1",
        timeout_seconds: float = 60.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.api_url = api_url
        self.api_key = api_key or os.environ.get("OPENAI_API_KEY")
        self.model = model
        self.timeout_seconds = timeout_seconds
        self._transport = transport

    async def transcribe(self, audio: bytes) -> str:
        if not audio:
            return ""
        headers = {"Authorization": f"Bearer {self.api_key}"} if self.api_key else {}
        files = {
            "file": ("voice.ogg", audio, "audio/ogg"),
            "model": (None, self.model),
        }
        try:
            async with httpx.AsyncClient(transport=self._transport) as client:
                response = await client.post(
                    self.api_url,
                    headers=headers,
                    files=files,
                    timeout=self.timeout_seconds,
                )
                response.raise_for_status()
                data = response.json()
        except (httpx.HTTPError, ValueError) as e:
            logger.error(f"Whisper transcription error: {e}")
            return ""
        text = data.get("text", "") if isinstance(data, dict) else ""
        return str(text).strip()
