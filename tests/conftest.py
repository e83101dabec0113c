"""Shared test fixtures."""

import subprocess
from pathlib import Path

import pytest

from video_transcript_mcp.models import Segment, Transcript
from video_transcript_mcp.providers.base import TranscriptionClient


class FakeClient(TranscriptionClient):
    """Returns canned transcripts in order and records every uploaded path."""

    def __init__(self, results=None, error=None, fail_on_call=None):
        self.results = list(results or [])
        self.error = error
        self.fail_on_call = fail_on_call
        self.calls: list[Path] = []
        self.closed = False

    async def transcribe(self, audio_path: Path) -> Transcript:
        self.calls.append(Path(audio_path))
        if self.error is not None and (
            self.fail_on_call is None or len(self.calls) == self.fail_on_call
        ):
            raise self.error
        if self.results:
            return self.results.pop(0) if len(self.results) > 1 else self.results[0]
        return Transcript(text="", segments=[], language="en")

    async def close(self) -> None:
        self.closed = True


def fake_media_tools(duration: float = 60.0, fail_when=None):
    """Build a ``subprocess.run`` stand-in for ffprobe/ffmpeg.

    ffprobe prints ``duration``; ffmpeg writes a small file at its output path.
    ``fail_when(cmd)`` returning True makes that invocation exit non-zero.
    """
    def run(cmd, **kwargs):
        if fail_when is not None and fail_when(cmd):
            return subprocess.CompletedProcess(cmd, 1, stdout="", stderr="boom")
        if "ffprobe" in cmd[0]:
            return subprocess.CompletedProcess(cmd, 0, stdout=f"{duration}\n", stderr="")
        Path(cmd[-1]).write_bytes(b"\x00" * 2048)
        return subprocess.CompletedProcess(cmd, 0, stdout="", stderr="")

    return run


@pytest.fixture
def sample_segments():
    return [
        Segment(start=0.0, end=2.5, text=" Hello world", id=0, avg_logprob=-0.2),
        Segment(start=2.5, end=5.5, text=" this is a test", id=1),
        Segment(start=5.5, end=7.5, text=" of the transcript", id=2),
        Segment(start=7.5, end=10.0, text=" extraction system", id=3),
        Segment(start=10.0, end=12.0, text=" goodbye world", id=4),
    ]


@pytest.fixture
def sample_transcript(sample_segments):
    return Transcript(
        text="Hello world this is a test of the transcript extraction system goodbye world",
        segments=sample_segments,
        language="en",
    )
