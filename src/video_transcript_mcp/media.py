"""ffprobe/ffmpeg wrappers: duration probing, audio extraction and chunking.

Each tool invocation is a blocking ``subprocess.run`` dispatched to the
default executor, so callers await one external process at a time.
"""

import asyncio
import logging
import math
import subprocess
from functools import partial
from pathlib import Path

from video_transcript_mcp.errors import ExtractionError, ProbeError, SplitError
from video_transcript_mcp.models import AudioChunk

logger = logging.getLogger(__name__)


async def run_tool(cmd: list[str]) -> subprocess.CompletedProcess:
    """Run an external command off the event loop and return the finished process."""
    loop = asyncio.get_event_loop()
    return await loop.run_in_executor(
        None,
        partial(subprocess.run, cmd, capture_output=True, text=True, check=False),
    )


def seconds_arg(seconds: float) -> str:
    """Fixed-point seconds for ffmpeg, exact to the microsecond."""
    return f"{seconds:.6f}".rstrip("0").rstrip(".") or "0"


def _detail(proc: subprocess.CompletedProcess) -> str:
    return (proc.stderr or proc.stdout or "").strip() or f"exit code {proc.returncode}"


def remove_quietly(path: Path | None) -> None:
    """Delete a temp file, logging instead of raising on failure."""
    if path is None:
        return
    try:
        path.unlink(missing_ok=True)
    except OSError as e:
        logger.warning(f"Failed to cleanup file {path}: {e}")


class MediaProber:
    def __init__(self, ffprobe_binary: str = "ffprobe"):
        self._ffprobe = ffprobe_binary

    async def probe_duration(self, path: Path) -> float:
        cmd = [
            self._ffprobe,
            "-v", "error",
            "-show_entries", "format=duration",
            "-of", "default=noprint_wrappers=1:nokey=1",
            str(path),
        ]
        try:
            proc = await run_tool(cmd)
        except OSError as e:
            raise ProbeError(f"Could not run ffprobe for {path.name}: {e}") from e
        if proc.returncode != 0:
            raise ProbeError(f"Could not determine duration of {path.name}: {_detail(proc)}")

        raw = (proc.stdout or "").strip()
        try:
            duration = float(raw)
        except ValueError as e:
            raise ProbeError(f"Unparseable duration {raw!r} for {path.name}") from e
        if not math.isfinite(duration) or duration < 0:
            raise ProbeError(f"Invalid duration {raw!r} for {path.name}")

        logger.debug(f"Probed {path.name}: {duration:.2f}s")
        return duration


class AudioExtractor:
    """Transcodes a video's audio track to a small mono file for upload."""

    def __init__(
        self,
        ffmpeg_binary: str = "ffmpeg",
        sample_rate: int = 16000,
        channels: int = 1,
        bitrate: str = "64k",
    ):
        self.ffmpeg_binary = ffmpeg_binary
        self.sample_rate = sample_rate
        self.channels = channels
        self.bitrate = bitrate

    def command(
        self,
        input_path: Path,
        output_path: Path,
        start: float | None = None,
        length: float | None = None,
    ) -> list[str]:
        cmd = [self.ffmpeg_binary, "-y", "-i", str(input_path)]
        if start is not None:
            cmd += ["-ss", seconds_arg(start)]
        if length is not None:
            cmd += ["-t", seconds_arg(length)]
        cmd += [
            "-vn",
            "-ar", str(self.sample_rate),
            "-ac", str(self.channels),
            "-b:a", self.bitrate,
            str(output_path),
        ]
        return cmd

    async def extract_audio(self, video_path: Path, audio_path: Path) -> Path:
        cmd = self.command(video_path, audio_path)
        logger.info(f"Extracting audio: {' '.join(cmd)}")
        try:
            proc = await run_tool(cmd)
        except OSError as e:
            raise ExtractionError(f"Could not run ffmpeg: {e}") from e
        if proc.returncode != 0:
            raise ExtractionError(f"Audio extraction failed: {_detail(proc)}")
        if not audio_path.exists():
            raise ExtractionError(f"ffmpeg produced no output at {audio_path}")
        return audio_path


class ChunkSplitter:
    """Cuts an audio file into fixed-length pieces in index order."""

    def __init__(self, prober: MediaProber, extractor: AudioExtractor):
        self._prober = prober
        self._extractor = extractor

    async def split(
        self, audio_path: Path, chunk_seconds: float, output_dir: Path | None = None
    ) -> list[AudioChunk]:
        if chunk_seconds <= 0:
            raise SplitError(f"Chunk length must be positive, got {chunk_seconds}")
        output_dir = output_dir or audio_path.parent

        try:
            total = await self._prober.probe_duration(audio_path)
        except ProbeError as e:
            raise SplitError(f"Cannot split {audio_path.name}: {e}") from e

        num_chunks = math.ceil(total / chunk_seconds)
        logger.info(f"Splitting audio into {num_chunks} chunks of {chunk_seconds:g}s each")

        chunks: list[AudioChunk] = []
        try:
            for i in range(num_chunks):
                start = i * chunk_seconds
                chunk_path = output_dir / f"{audio_path.stem}_chunk_{i:03d}{audio_path.suffix}"
                cmd = self._extractor.command(
                    audio_path, chunk_path, start=start, length=chunk_seconds
                )
                logger.debug(f"Creating chunk {i + 1}/{num_chunks}")
                try:
                    proc = await run_tool(cmd)
                except OSError as e:
                    raise SplitError(f"Could not run ffmpeg for chunk {i}: {e}") from e
                if proc.returncode != 0:
                    remove_quietly(chunk_path)
                    raise SplitError(f"Failed to create chunk {i}: {_detail(proc)}")
                if not chunk_path.exists():
                    raise SplitError(f"ffmpeg produced no output for chunk {i}")
                chunks.append(
                    AudioChunk(index=i, path=chunk_path, start=start, duration=chunk_seconds)
                )
        except SplitError:
            for chunk in chunks:
                remove_quietly(chunk.path)
            raise

        logger.info(f"Created {len(chunks)} chunks")
        return chunks
