"""Speech-to-text providers."""

from .base import TranscriptionClient
from .whisper_api import WhisperAPIClient

__all__ = ["TranscriptionClient", "WhisperAPIClient"]
