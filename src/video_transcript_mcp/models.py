"""Data models for transcripts, cache entries and pipeline results."""

from datetime import datetime
from pathlib import Path

from pydantic import BaseModel


class Segment(BaseModel):
    start: float
    end: float
    text: str
    # Passthrough scoring fields from the verbose_json response
    id: int | None = None
    seek: int | None = None
    tokens: list[int] = []
    temperature: float | None = None
    avg_logprob: float | None = None
    compression_ratio: float | None = None
    no_speech_prob: float | None = None

    def shifted(self, offset: float) -> "Segment":
        """Copy of this segment moved forward by ``offset`` seconds."""
        return self.model_copy(
            update={"start": self.start + offset, "end": self.end + offset}
        )


class Transcript(BaseModel):
    text: str = ""
    segments: list[Segment] = []
    language: str = "en"


class Metadata(BaseModel):
    duration_seconds: float
    duration_minutes: float
    original_size_mb: float
    compressed_size_mb: float
    was_chunked: bool = False
    from_cache: bool = False
    cached_at: datetime | None = None


class AudioChunk(BaseModel):
    index: int
    path: Path
    start: float
    duration: float


class CacheEntry(BaseModel):
    filename: str
    transcript: Transcript
    metadata: Metadata
    cached_at: datetime


class CacheStatsEntry(BaseModel):
    filename: str
    duration: float
    cached_at: datetime
    segment_count: int


class CacheStats(BaseModel):
    total_entries: int
    entries: list[CacheStatsEntry] = []
    hits: int = 0
    misses: int = 0


class TranscriptionOutcome(BaseModel):
    success: bool
    transcript: Transcript | None = None
    metadata: Metadata | None = None
    error: str | None = None

