"""Typed core domain and pipeline primitives."""

from personaforge.core.errors import (
    FormatRejectedError,
    InferenceBackendError,
    InferenceError,
    InferenceTimeoutError,
    PersonaForgeError,
    PlatformError,
    PlatformSendError,
)
from personaforge.core.models import (
    ConversationId,
    ConversationSettings,
    DeliveryReport,
    InboundMessage,
    MediaPayload,
    PendingBatch,
    Persona,
    SentMessage,
    Turn,
    TurnOutcome,
)
from personaforge.core.pipeline import Middleware, NextFn, Pipeline, PipelineContext

__all__ = [
    "ConversationId",
    "ConversationSettings",
    "DeliveryReport",
    "FormatRejectedError",
    "InboundMessage",
    "InferenceBackendError",
    "InferenceError",
    "InferenceTimeoutError",
    "MediaPayload",
    "Middleware",
    "NextFn",
    "PendingBatch",
    "Persona",
    "PersonaForgeError",
    "Pipeline",
    "PipelineContext",
    "PlatformError",
    "PlatformSendError",
    "SentMessage",
    "Turn",
    "TurnOutcome",
]
