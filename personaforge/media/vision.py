"""Image description through the inference queue's vision model."""

from __future__ import annotations

from personaforge.inference.queue import InferenceQueue

PROMPT = (
    "Describe this image in 1-2 concise sentences. "
    "Be factual, include key objects/action, and mention visible text only if readable."
)


class InferenceVisionDescriber:
    """``VisionPort`` backed by a multimodal model on the shared backend."""

    def __init__(
        self,
        queue: InferenceQueue,
        *,
        model: str,
        timeout_seconds: float | None = None,
        max_tokens: int = 160,
    ) -> None:
        self._queue = queue
        self._model = model
        self._timeout = timeout_seconds
        self._max_tokens = max_tokens

    async def describe(self, frames_b64: list[str], prompt: str = PROMPT) -> str:
        if not frames_b64:
            return ""
        text = await self._queue.describe(
            self._model,
            prompt or PROMPT,
            list(frames_b64),
            timeout=self._timeout,
            max_tokens=self._max_tokens,
        )
        return text.strip()
