"""Caption synchronization against a playback clock, plus SRT/WebVTT export."""

import logging
from abc import ABC, abstractmethod
from typing import Callable

from video_transcript_mcp.models import Segment, Transcript
from video_transcript_mcp.utils import format_caption_time

logger = logging.getLogger(__name__)

SPEAKER_PALETTE = (
    "#00ff00",
    "#00bfff",
    "#ffff00",
    "#ff69b4",
    "#ffa500",
    "#ff4500",
)


class SpeakerAssigner(ABC):
    """Attributes a transcript segment to a speaker slot."""

    @abstractmethod
    def speaker_slot(self, segment_index: int, segment: Segment) -> int:
        ...

    def color(self, segment_index: int, segment: Segment) -> str:
        slot = self.speaker_slot(segment_index, segment)
        return SPEAKER_PALETTE[slot % len(SPEAKER_PALETTE)]

    def label(self, segment_index: int, segment: Segment) -> str:
        return f"Speaker {self.speaker_slot(segment_index, segment) + 1}"


class RoundRobinSpeakerAssigner(SpeakerAssigner):
    """Placeholder diarization: pairs of segments rotate through the palette.

    Deterministic per transcript but carries no information about who is
    actually speaking.
    """

    def __init__(self, segments_per_turn: int = 2, speakers: int = len(SPEAKER_PALETTE)):
        self.segments_per_turn = segments_per_turn
        self.speakers = speakers

    def speaker_slot(self, segment_index: int, segment: Segment) -> int:
        return (segment_index // self.segments_per_turn) % self.speakers


class SubtitleSynchronizer:
    def __init__(
        self,
        segments: list[Segment],
        on_show: Callable[[str, str], None],
        on_hide: Callable[[], None],
        assigner: SpeakerAssigner | None = None,
    ):
        self._segments = list(segments)
        self._on_show = on_show
        self._on_hide = on_hide
        self._assigner = assigner or RoundRobinSpeakerAssigner()
        self.current_time = 0.0
        self.active_index = -1

    @classmethod
    def for_transcript(cls, transcript: Transcript, on_show, on_hide, assigner=None):
        return cls(transcript.segments, on_show, on_hide, assigner)

    def load(self, segments: list[Segment]) -> None:
        """Swap in a new transcript; a visible caption is hidden first."""
        self.reset()
        self._segments = list(segments)

    def reset(self) -> None:
        if self.active_index != -1:
            self._on_hide()
        self.current_time = 0.0
        self.active_index = -1

    def find_active(self, current_time: float) -> int:
        for i, seg in enumerate(self._segments):
            if seg.start <= current_time <= seg.end:
                return i
        return -1

    def on_time_update(self, current_time: float) -> None:
        self.current_time = current_time
        index = self.find_active(current_time)

        if index == -1:
            if self.active_index != -1:
                self.active_index = -1
                self._on_hide()
            return
        if index == self.active_index:
            return

        self.active_index = index
        segment = self._segments[index]
        color = self._assigner.color(index, segment)
        logger.debug(f"Showing segment {index} at {current_time:.2f}s in {color}")
        self._on_show(segment.text.strip(), color)


def _cues(transcript: Transcript, assigner: SpeakerAssigner | None, separator: str):
    cues = []
    for i, seg in enumerate(transcript.segments):
        text = seg.text.strip()
        if not text:
            continue
        if assigner is not None:
            text = f"{assigner.label(i, seg)}: {text}"
        start = format_caption_time(seg.start, separator)
        end = format_caption_time(seg.end, separator)
        cues.append((f"{start} --> {end}", text))
    return cues


def render_srt(transcript: Transcript, assigner: SpeakerAssigner | None = None) -> str:
    lines = []
    for counter, (timing, text) in enumerate(_cues(transcript, assigner, ","), start=1):
        lines += [str(counter), timing, text, ""]
    return "\n".join(lines)


def render_vtt(transcript: Transcript, assigner: SpeakerAssigner | None = None) -> str:
    lines = ["WEBVTT", ""]
    for timing, text in _cues(transcript, assigner, "."):
        lines += [timing, text, ""]
    return "\n".join(lines)
