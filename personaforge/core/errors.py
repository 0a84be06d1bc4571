"""Exception hierarchy shared by the inference and delivery layers."""

from __future__ import annotations


class PersonaForgeError(Exception):
    """Base class for all personaforge errors."""


class InferenceError(PersonaForgeError):
    """Inference backend call did not produce a usable result."""


class InferenceBackendError(InferenceError):
    """Network failure, non-success HTTP status, or malformed backend payload."""

    def __init__(self, message: str, *, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code


class InferenceTimeoutError(InferenceError):
    """Inference call exceeded its deadline; no partial result is available."""

    def __init__(self, timeout: float) -> None:
        super().__init__(f"inference timed out after {timeout:.1f}s")
        self.timeout = timeout


class PlatformError(PersonaForgeError):
    """Chat platform rejected or failed an operation."""


class PlatformSendError(PlatformError):
    """Message could not be delivered."""


class FormatRejectedError(PlatformError):
    """Platform refused the rich-text markup of an outgoing message."""
