"""Media enrichment collaborators."""

from personaforge.media.enrich import MediaEnricher
from personaforge.media.transcription import WhisperTranscriber
from personaforge.media.vision import InferenceVisionDescriber

__all__ = ["InferenceVisionDescriber", "MediaEnricher", "WhisperTranscriber"]
