"""End-to-end video transcription: cache lookup, audio extraction, transcription."""

import asyncio
import logging
import shutil
import tempfile
from functools import partial
from pathlib import Path

from video_transcript_mcp.cache import (
    JsonFileStorage,
    TranscriptCache,
    fingerprint,
    fingerprint_file,
)
from video_transcript_mcp.config import Settings
from video_transcript_mcp.errors import CacheIOError, TranscriptionPipelineError
from video_transcript_mcp.media import AudioExtractor, ChunkSplitter, MediaProber, remove_quietly
from video_transcript_mcp.models import Metadata, TranscriptionOutcome
from video_transcript_mcp.orchestrator import ChunkedTranscriber
from video_transcript_mcp.providers.base import TranscriptionClient
from video_transcript_mcp.providers.whisper_api import WhisperAPIClient
from video_transcript_mcp.utils import bytes_to_mb

logger = logging.getLogger(__name__)


class TranscriptionPipeline:
    """Turns a video into a transcript, reusing cached results for identical bytes.

    Every temporary artifact (video copy, extracted audio, chunks) lives in a
    per-call work directory that is removed on success and on failure.
    """

    def __init__(
        self,
        cache: TranscriptCache,
        prober: MediaProber,
        extractor: AudioExtractor,
        transcriber: ChunkedTranscriber,
        client: TranscriptionClient | None = None,
        temp_dir: Path | None = None,
    ):
        self.cache = cache
        self._prober = prober
        self._extractor = extractor
        self._transcriber = transcriber
        self._client = client
        self._temp_dir = temp_dir

    @classmethod
    def from_settings(
        cls, settings: Settings, client: TranscriptionClient | None = None
    ) -> "TranscriptionPipeline":
        client = client or WhisperAPIClient(
            api_key=settings.openai_api_key,
            base_url=settings.api_base_url,
            model=settings.transcription_model,
            language=settings.language,
            timeout=settings.request_timeout_seconds,
        )
        prober = MediaProber(settings.ffprobe_binary)
        extractor = AudioExtractor(
            ffmpeg_binary=settings.ffmpeg_binary,
            sample_rate=settings.audio_sample_rate,
            channels=settings.audio_channels,
            bitrate=settings.audio_bitrate,
        )
        transcriber = ChunkedTranscriber(
            client,
            ChunkSplitter(prober, extractor),
            single_shot_max_seconds=settings.single_shot_max_seconds,
            chunk_seconds=settings.chunk_seconds,
            language=settings.language,
        )
        cache = TranscriptCache(
            JsonFileStorage(settings.cache_path),
            memory_entries=settings.cache_memory_entries,
        )
        return cls(cache, prober, extractor, transcriber, client=client, temp_dir=settings.temp_dir)

    async def run(self, filename: str, raw_bytes: bytes) -> TranscriptionOutcome:
        """Transcribe an in-memory video file."""
        name = Path(filename).name or "video"
        logger.info(f"Received file: {name} ({bytes_to_mb(len(raw_bytes))} MB)")
        key = fingerprint(raw_bytes)
        cached = self._lookup(key, name)
        if cached is not None:
            return cached

        work_dir = None
        try:
            work_dir = Path(tempfile.mkdtemp(prefix="vt_mcp_", dir=self._temp_dir))
            video_path = work_dir / f"video_{name}"
            video_path.write_bytes(raw_bytes)
            return await self._process(name, key, video_path, len(raw_bytes), work_dir)
        except (TranscriptionPipelineError, OSError) as e:
            logger.error(f"Transcription error for {name}: {e}")
            return TranscriptionOutcome(success=False, error=str(e))
        finally:
            self._cleanup(work_dir)

    async def run_file(self, path: str | Path) -> TranscriptionOutcome:
        """Transcribe a video already on disk without copying it."""
        path = Path(path).expanduser()
        if not path.is_file():
            return TranscriptionOutcome(success=False, error=f"File not found: {path}")

        loop = asyncio.get_event_loop()
        try:
            key = await loop.run_in_executor(None, partial(fingerprint_file, path))
            size = path.stat().st_size
        except OSError as e:
            return TranscriptionOutcome(success=False, error=f"Cannot read {path}: {e}")
        logger.info(f"Received file: {path.name} ({bytes_to_mb(size)} MB)")

        cached = self._lookup(key, path.name)
        if cached is not None:
            return cached

        work_dir = None
        try:
            work_dir = Path(tempfile.mkdtemp(prefix="vt_mcp_", dir=self._temp_dir))
            return await self._process(path.name, key, path, size, work_dir)
        except (TranscriptionPipelineError, OSError) as e:
            logger.error(f"Transcription error for {path.name}: {e}")
            return TranscriptionOutcome(success=False, error=str(e))
        finally:
            self._cleanup(work_dir)

    def _lookup(self, key: str, name: str) -> TranscriptionOutcome | None:
        entry = self.cache.get(key)
        if entry is None:
            return None
        logger.info(f"Cache hit for {name} (cached {entry.cached_at.isoformat()})")
        return TranscriptionOutcome(
            success=True, transcript=entry.transcript, metadata=entry.metadata
        )

    async def _process(
        self, name: str, key: str, video_path: Path, original_size: int, work_dir: Path
    ) -> TranscriptionOutcome:
        duration = await self._prober.probe_duration(video_path)
        logger.info(f"Video duration: {duration / 60:.1f} minutes ({duration:.1f}s)")

        audio_path = work_dir / "audio.mp3"
        try:
            await self._extractor.extract_audio(video_path, audio_path)
        except TranscriptionPipelineError:
            remove_quietly(audio_path)
            raise
        compressed_size = audio_path.stat().st_size
        logger.info(f"Compressed audio size: {bytes_to_mb(compressed_size)} MB")

        transcript = await self._transcriber.transcribe(audio_path, duration)
        logger.info(f"Transcription complete: {len(transcript.segments)} segments")

        metadata = Metadata(
            duration_seconds=duration,
            duration_minutes=round(duration / 60, 1),
            original_size_mb=bytes_to_mb(original_size),
            compressed_size_mb=bytes_to_mb(compressed_size),
            was_chunked=self._transcriber.needs_chunking(duration),
        )
        try:
            self.cache.put(key, name, transcript, metadata)
        except CacheIOError as e:
            logger.error(f"Transcript not cached: {e}")

        return TranscriptionOutcome(success=True, transcript=transcript, metadata=metadata)

    def _cleanup(self, work_dir: Path | None) -> None:
        if work_dir is None:
            return
        try:
            shutil.rmtree(work_dir)
        except FileNotFoundError:
            pass
        except OSError as e:
            logger.warning(f"Cleanup error for {work_dir}: {e}")

    def get_cache_stats(self) -> dict:
        stats = self.cache.stats()
        return {
            "total_entries": stats.total_entries,
            "entries": [e.model_dump(mode="json") for e in stats.entries],
        }

    def clear_cache(self) -> dict:
        try:
            self.cache.clear()
        except CacheIOError as e:
            logger.error(f"Failed to clear cache: {e}")
            return {"success": False, "error": str(e)}
        return {"success": True}

    async def close(self) -> None:
        if self._client is not None:
            await self._client.close()
