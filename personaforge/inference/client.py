"""HTTP client for an Ollama-compatible inference backend."""

from __future__ import annotations

from typing import Any

import httpx
from loguru import logger

from personaforge.core.errors import InferenceBackendError, InferenceTimeoutError
from personaforge.utils.helpers import truncate_string


class OllamaClient:
    """Thin async wrapper over ``/api/generate``, ``/api/embeddings`` and ``/api/tags``.

    Errors are raised as ``InferenceBackendError`` / ``InferenceTimeoutError``;
    nothing is retried here.
    """

    def __init__(
        self,
        base_url: str = "http://localhost:11434",
        *,
        timeout_seconds: float = 180.0,
        connect_timeout_seconds: float = 10.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self._timeout_seconds = timeout_seconds
        self._client = httpx.AsyncClient(
            base_url=self.base_url,
            timeout=httpx.Timeout(timeout_seconds, connect=connect_timeout_seconds),
            transport=transport,
        )

    async def aclose(self) -> None:
        await self._client.aclose()

    async def __aenter__(self) -> OllamaClient:
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.aclose()

    async def generate(
        self,
        model: str,
        prompt: str,
        *,
        temperature: float = 0.7,
        max_tokens: int = 2048,
        images: list[str] | None = None,
    ) -> str:
        payload: dict[str, Any] = {
            "model": model,
            "prompt": prompt,
            "stream": False,
            "options": {"temperature": temperature, "num_predict": max_tokens},
        }
        if images:
            payload["images"] = list(images)
        data = await self._request("POST", "/api/generate", json=payload)
        text = data.get("response")
        if not isinstance(text, str):
            raise InferenceBackendError("generate: response field missing")
        return text

    async def embed(self, model: str, text: str) -> list[float]:
        data = await self._request("POST", "/api/embeddings", json={"model": model, "prompt": text})
        vector = data.get("embedding")
        if not isinstance(vector, list):
            raise InferenceBackendError("embeddings: embedding field missing")
        try:
            return [float(v) for v in vector]
        except (TypeError, ValueError) as exc:
            raise InferenceBackendError(f"embeddings: non-numeric vector ({exc})") from exc

    async def list_models(self) -> list[str]:
        data = await self._request("GET", "/api/tags")
        models = data.get("models")
        if not isinstance(models, list):
            return []
        return [str(m["name"]) for m in models if isinstance(m, dict) and m.get("name")]

    async def health(self) -> bool:
        try:
            await self._request("GET", "/api/tags")
        except (InferenceBackendError, InferenceTimeoutError) as exc:
            logger.debug("Inference backend health check failed: {}", exc)
            return False
        return True

    async def _request(self, method: str, path: str, **kwargs: Any) -> dict[str, Any]:
        try:
            response = await self._client.request(method, path, **kwargs)
        except httpx.TimeoutException as exc:
            raise InferenceTimeoutError(self._timeout_seconds) from exc
        except httpx.HTTPError as exc:
            raise InferenceBackendError(f"network error: {exc}") from exc

        if response.status_code >= 400:
            body = truncate_string(response.text.strip(), 300)
            raise InferenceBackendError(
                f"HTTP {response.status_code}: {body}", status_code=response.status_code
            )
        try:
            data = response.json()
        except ValueError as exc:
            raise InferenceBackendError(f"invalid JSON from {path}") from exc
        if not isinstance(data, dict):
            raise InferenceBackendError(f"unexpected payload from {path}")
        return data
