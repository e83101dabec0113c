"""Abstract base for speech-to-text providers."""

from abc import ABC, abstractmethod
from pathlib import Path

from video_transcript_mcp.models import Transcript


class TranscriptionClient(ABC):
    @abstractmethod
    async def transcribe(self, audio_path: Path) -> Transcript:
        """Transcribe one audio file into a segment-level transcript."""
        ...

    @abstractmethod
    async def close(self) -> None:
        """Clean up resources."""
        ...
