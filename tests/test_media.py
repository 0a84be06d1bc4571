import base64

import httpx
from conftest import FakeBackend, FakePlatform, make_message

from personaforge.core.errors import InferenceBackendError
from personaforge.core.models import MediaPayload
from personaforge.inference import InferenceQueue
from personaforge.media import InferenceVisionDescriber, MediaEnricher, WhisperTranscriber


class _Transcriber:
    def __init__(self, text: str = "see you at eight") -> None:
        self.text = text
        self.audio: list[bytes] = []

    async def transcribe(self, audio: bytes) -> str:
        self.audio.append(audio)
        return self.text


class _Vision:
    def __init__(self, text: str = "a cat on a keyboard", error: Exception | None = None) -> None:
        self.text = text
        self.error = error
        self.frames: list[list[str]] = []

    async def describe(self, frames_b64: list[str], prompt: str = "") -> str:
        self.frames.append(frames_b64)
        if self.error is not None:
            raise self.error
        return self.text


async def test_text_messages_pass_through() -> None:
    message = make_message("plain text")
    assert await MediaEnricher(transcriber=_Transcriber()).enrich(message) is message


async def test_voice_note_becomes_transcript() -> None:
    transcriber = _Transcriber()
    message = make_message("", media=MediaPayload(kind="voice", data=b"OggS"))

    enriched = await MediaEnricher(transcriber=transcriber).enrich(message)

    assert enriched.text == "[Voice message]: see you at eight"
    assert transcriber.audio == [b"OggS"]
    assert enriched.message_id == message.message_id


async def test_photo_caption_is_kept_above_description() -> None:
    vision = _Vision()
    message = make_message("look", media=MediaPayload(kind="photo", frames=("aGk=",)))

    enriched = await MediaEnricher(vision=vision).enrich(message)

    assert enriched.text == "look\n[Image]: a cat on a keyboard"
    assert vision.frames == [["aGk="]]


async def test_media_is_downloaded_when_not_inline(platform: FakePlatform) -> None:
    platform.files["file-1"] = b"\x89PNG"
    vision = _Vision()
    message = make_message("", media=MediaPayload(kind="animation", file_id="file-1"))

    enriched = await MediaEnricher(vision=vision, platform=platform).enrich(message)

    assert enriched.text == "[GIF]: a cat on a keyboard"
    assert vision.frames == [[base64.b64encode(b"\x89PNG").decode()]]


async def test_failures_degrade_to_bare_label() -> None:
    broken = _Vision(error=InferenceBackendError("HTTP 500: boom", status_code=500))
    photo = make_message("", media=MediaPayload(kind="photo", frames=("aGk=",)))
    voice = make_message("", media=MediaPayload(kind="video_note"))

    assert (await MediaEnricher(vision=broken).enrich(photo)).text == "[Image]"
    assert (await MediaEnricher().enrich(voice)).text == "[Video message]"


async def test_vision_describer_uses_the_queue() -> None:
    backend = FakeBackend(["  a red bicycle  "])
    describer = InferenceVisionDescriber(InferenceQueue(backend), model="llava:7b")

    assert await describer.describe(["aGk="]) == "a red bicycle"
    assert await describer.describe([]) == ""
    assert backend.images == [["aGk="]]


async def test_whisper_posts_multipart_audio() -> None:
    seen: dict = {}

    def handler(request: httpx.Request) -> httpx.Response:
        seen["auth"] = request.headers.get("authorization")
        seen["body"] = request.content
        return httpx.Response(200, json={"text": " hello there "})

    transcriber = WhisperTranscriber(
        "http://whisper.test/v1/audio/transcriptions",
        api_key="sk-test",
        transport=httpx.MockTransport(handler),
    )

    assert await transcriber.transcribe(b"OggS-data") == "hello there"
    assert seen["auth"] == "Bearer sk-test"
    assert b"OggS-data" in seen["body"]
    assert b"whisper-1" in seen["body"]


async def test_whisper_errors_yield_empty_transcript() -> None:
    transcriber = WhisperTranscriber(
        "http://whisper.test/v1/audio/transcriptions",
        api_key="sk-test",
        transport=httpx.MockTransport(lambda request: httpx.Response(500, text="upstream down")),
    )

    assert await transcriber.transcribe(b"OggS") == ""
    assert await transcriber.transcribe(b"") == ""
