"""Turn non-text inbound media into a synthetic text turn."""

from __future__ import annotations

import base64
from dataclasses import replace

from loguru import logger

from personaforge.core.errors import InferenceError, PlatformError
from personaforge.core.models import InboundMessage, MediaPayload
from personaforge.core.ports import ChatPlatformPort, TranscriptionPort, VisionPort

LABELS = {
    "voice": "[Voice message]",
    "photo": "[Image]",
    "animation": "[GIF]",
    "video_note": "[Video message]",
}


class MediaEnricher:
    """Transcribe voice notes and describe images before the pipeline runs.

    Failures degrade to the bare media label so the turn still carries
    something the trigger rules and prompt can see.
    """

    def __init__(
        self,
        *,
        transcriber: TranscriptionPort | None = None,
        vision: VisionPort | None = None,
        platform: ChatPlatformPort | None = None,
        vision_prompt: str = "",
    ) -> None:
        self._transcriber = transcriber
        self._vision = vision
        self._platform = platform
        self._vision_prompt = vision_prompt

    async def enrich(self, message: InboundMessage) -> InboundMessage:
        media = message.media
        if media is None:
            return message

        label = LABELS[media.kind]
        if media.kind == "voice":
            content = await self._transcribe(media)
        else:
            content = await self._describe(media)

        synthetic = f"{label}: {content}" if content else label
        caption = message.text.strip()
        text = f"{caption}\n{synthetic}" if caption else synthetic
        return replace(message, text=text)

    async def _transcribe(self, media: MediaPayload) -> str:
        if self._transcriber is None:
            return ""
        audio = media.data or await self._download(media)
        if not audio:
            return ""
        return (await self._transcriber.transcribe(audio)).strip()

    async def _describe(self, media: MediaPayload) -> str:
        if self._vision is None:
            return ""
        frames = list(media.frames)
        if not frames:
            raw = media.data or await self._download(media)
            if raw:
                frames = [base64.b64encode(raw).decode()]
        if not frames:
            return ""
        try:
            return (await self._vision.describe(frames, self._vision_prompt)).strip()
        except InferenceError as exc:
            logger.warning("Image description failed: {}", exc)
            return ""

    async def _download(self, media: MediaPayload) -> bytes:
        if self._platform is None or not media.file_id:
            return b""
        try:
            return await self._platform.download_file(media.file_id)
        except PlatformError as exc:
            logger.warning("Media download failed for {}: {}", media.file_id, exc)
            return b""
