"""Single-shot or chunked transcription of one compressed audio file."""

import logging
from pathlib import Path

from video_transcript_mcp.media import ChunkSplitter, remove_quietly
from video_transcript_mcp.models import Segment, Transcript
from video_transcript_mcp.providers.base import TranscriptionClient

logger = logging.getLogger(__name__)

SINGLE_SHOT_MAX_SECONDS = 2700.0
CHUNK_SECONDS = 1200.0


class ChunkedTranscriber:
    """Picks a strategy by duration and stitches chunk results into one transcript.

    Audio up to ``single_shot_max_seconds`` (inclusive) goes to the client in
    one request. Longer audio is split into ``chunk_seconds`` pieces that are
    transcribed strictly in index order; each chunk's segments are shifted by
    the sum of the nominal lengths of the chunks before it.
    """

    def __init__(
        self,
        client: TranscriptionClient,
        splitter: ChunkSplitter,
        single_shot_max_seconds: float = SINGLE_SHOT_MAX_SECONDS,
        chunk_seconds: float = CHUNK_SECONDS,
        language: str = "en",
    ):
        self._client = client
        self._splitter = splitter
        self.single_shot_max_seconds = single_shot_max_seconds
        self.chunk_seconds = chunk_seconds
        self.language = language

    def needs_chunking(self, duration: float) -> bool:
        return duration > self.single_shot_max_seconds

    async def transcribe(self, audio_path: Path, duration: float) -> Transcript:
        if not self.needs_chunking(duration):
            logger.info(f"Using single-file transcription ({duration:.1f}s)")
            return await self._client.transcribe(audio_path)

        logger.info(f"Using chunked transcription ({duration:.1f}s)")
        return await self._transcribe_chunked(audio_path)

    async def _transcribe_chunked(self, audio_path: Path) -> Transcript:
        chunks = await self._splitter.split(audio_path, self.chunk_seconds)

        all_segments: list[Segment] = []
        text_parts: list[str] = []
        time_offset = 0.0

        pending = list(chunks)
        try:
            while pending:
                chunk = pending.pop(0)
                logger.info(f"Transcribing chunk {chunk.index + 1}/{len(chunks)}")
                try:
                    result = await self._client.transcribe(chunk.path)
                finally:
                    remove_quietly(chunk.path)

                # Offset advances by nominal length, not measured chunk duration
                all_segments.extend(seg.shifted(time_offset) for seg in result.segments)
                if result.segments and result.text.strip():
                    text_parts.append(result.text.strip())
                time_offset += self.chunk_seconds
                logger.debug(f"Chunk {chunk.index + 1}/{len(chunks)} complete")
        finally:
            for chunk in pending:
                remove_quietly(chunk.path)

        return Transcript(
            text=" ".join(text_parts).strip(),
            segments=all_segments,
            language=self.language,
        )
