"""Video Transcript MCP Server."""

import logging
import sys
from contextlib import asynccontextmanager
from typing import Annotated, Literal

from pydantic import Field
from mcp.server.fastmcp import FastMCP

from video_transcript_mcp.config import Settings, Transport
from video_transcript_mcp.models import Segment, TranscriptionOutcome
from video_transcript_mcp.pipeline import TranscriptionPipeline
from video_transcript_mcp.subtitles import RoundRobinSpeakerAssigner, render_srt, render_vtt
from video_transcript_mcp.utils import format_timestamp, video_mime_type

# Logging to stderr (MCP convention)
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    stream=sys.stderr,
)
logger = logging.getLogger("video-transcript-mcp")

# Module-level state
_pipeline = None
_settings = None

# Transcribing uploads audio to the API and writes the cache file
TRANSCRIBE_ANNOTATIONS = {
    "readOnlyHint": False,
    "destructiveHint": False,
    "openWorldHint": True,
}
CACHE_READ_ANNOTATIONS = {
    "readOnlyHint": True,
    "destructiveHint": False,
    "openWorldHint": False,
}
CACHE_CLEAR_ANNOTATIONS = {
    "readOnlyHint": False,
    "destructiveHint": True,
    "openWorldHint": False,
}


@asynccontextmanager
async def app_lifespan(server: FastMCP):
    global _pipeline, _settings
    _settings = Settings()
    if not _settings.openai_api_key:
        logger.warning("VT_MCP_OPENAI_API_KEY is not set; transcription requests will fail")
    _pipeline = TranscriptionPipeline.from_settings(_settings)
    logger.info(f"Server started (cache: {_settings.cache_path})")
    yield

    if _pipeline:
        await _pipeline.close()
    logger.info("Server stopped")


mcp = FastMCP(
    "Video Transcript",
    instructions="Transcribe local video files and export synchronized captions",
    lifespan=app_lifespan,
)


def _segments_to_markdown(segments: list[Segment]) -> str:
    """Format segments as markdown with timestamps."""
    lines = []
    for seg in segments:
        ts = format_timestamp(seg.start)
        lines.append(f"**[{ts}]** {seg.text.strip()}")
    return "\n".join(lines)


def _outcome_header(path: str, outcome: TranscriptionOutcome) -> str:
    meta = outcome.metadata
    flags = []
    if meta.was_chunked:
        flags.append("chunked")
    if meta.from_cache:
        flags.append(f"cached {meta.cached_at.isoformat() if meta.cached_at else ''}".strip())
    return (
        f"## Transcript: {path}\n"
        f"**Type:** {video_mime_type(path)} | **Duration:** {meta.duration_minutes} min"
        f" | **Size:** {meta.original_size_mb} MB -> {meta.compressed_size_mb} MB"
        f" | **Segments:** {len(outcome.transcript.segments)}"
        + (f" | **Flags:** {', '.join(flags)}" if flags else "")
        + "\n"
    )


@mcp.tool(annotations=TRANSCRIBE_ANNOTATIONS)
async def transcribe_video(
    path: Annotated[str, Field(description="Path to a local video file (mp4, mkv, mov, webm, ...)")],
    format: Annotated[Literal["text", "segments", "both"], Field(default="text", description="Output format: text for plain text, segments for timestamped segments, both for combined output")] = "text",
) -> str:
    """Transcribe a local video file, reusing the cached transcript for identical files."""
    outcome = await _pipeline.run_file(path)
    if not outcome.success:
        return f"Error transcribing {path}: {outcome.error}"

    header = _outcome_header(path, outcome)
    transcript = outcome.transcript
    if format == "segments":
        body = _segments_to_markdown(transcript.segments)
    elif format == "both":
        body = (
            f"### Full Text\n{transcript.text}\n\n"
            f"### Timestamped Segments\n{_segments_to_markdown(transcript.segments)}"
        )
    else:
        body = transcript.text
    return f"{header}\n{body}"


@mcp.tool(annotations=TRANSCRIBE_ANNOTATIONS)
async def search_transcript(
    path: Annotated[str, Field(description="Path to the local video file to search in")],
    query: Annotated[str, Field(description="Search query string (case-insensitive keyword or phrase to find in the transcript)")],
    context_segments: Annotated[int, Field(default=1, ge=0, le=10, description="Number of surrounding transcript segments to include as context around each match")] = 1,
) -> str:
    """Search for keywords or phrases in a video transcript and return matching segments with timestamps."""
    if not query.strip():
        return "Error: Search query cannot be empty."

    outcome = await _pipeline.run_file(path)
    if not outcome.success:
        return f"Error transcribing {path}: {outcome.error}"

    query_lower = query.lower()
    matches = []
    segments = outcome.transcript.segments

    for i, seg in enumerate(segments):
        if query_lower in seg.text.lower():
            start_idx = max(0, i - context_segments)
            end_idx = min(len(segments), i + context_segments + 1)
            context = segments[start_idx:end_idx]
            match_text = "\n".join(
                f"{'> ' if j == i else '  '}"
                f"**[{format_timestamp(s.start)}]** {s.text.strip()}"
                for j, s in zip(range(start_idx, end_idx), context)
            )
            matches.append(match_text)

    if not matches:
        return f"No matches found for '{query}' in {path}."

    header = (
        f"## Search Results: '{query}' in {path}\n"
        f"**{len(matches)} match(es) found**\n"
    )
    return f"{header}\n" + "\n\n---\n\n".join(matches)


@mcp.tool(annotations=TRANSCRIBE_ANNOTATIONS)
async def get_subtitles(
    path: Annotated[str, Field(description="Path to the local video file to caption")],
    format: Annotated[Literal["srt", "vtt"], Field(default="srt", description="Caption file format: srt (SubRip) or vtt (WebVTT)")] = "srt",
    speaker_labels: Annotated[bool, Field(default=True, description="Prefix each caption with its placeholder speaker label")] = True,
) -> str:
    """Export the transcript of a video as an SRT or WebVTT caption file."""
    outcome = await _pipeline.run_file(path)
    if not outcome.success:
        return f"Error transcribing {path}: {outcome.error}"

    assigner = RoundRobinSpeakerAssigner() if speaker_labels else None
    if format == "vtt":
        return render_vtt(outcome.transcript, assigner)
    return render_srt(outcome.transcript, assigner)


@mcp.tool(annotations=CACHE_READ_ANNOTATIONS)
def cache_stats() -> str:
    """List the videos whose transcripts are cached."""
    stats = _pipeline.get_cache_stats()
    lines = [f"## Transcript Cache ({stats['total_entries']} entries)"]
    for entry in stats["entries"]:
        lines.append(
            f"- {entry['filename']}: {format_timestamp(entry['duration'])}, "
            f"{entry['segment_count']} segments, cached {entry['cached_at']}"
        )
    return "\n".join(lines)


@mcp.tool(annotations=CACHE_CLEAR_ANNOTATIONS)
def clear_cache() -> str:
    """Delete every cached transcript."""
    result = _pipeline.clear_cache()
    if not result["success"]:
        return f"Error clearing cache: {result['error']}"
    return "Cache cleared."


# -- MCP Resources --


@mcp.resource("video://help")
def help_resource() -> str:
    """Usage guide for the Video Transcript MCP server."""
    return """# Video Transcript MCP Server - Help Guide

## Available Tools

### transcribe_video
Transcribe a local video file with Whisper.
- Videos up to 45 minutes are sent in one request; longer ones in 20 minute chunks
- Identical files are answered from the local cache
- Example: transcribe_video(path="/videos/talk.mp4", format="segments")

### search_transcript
Search for keywords within a video transcript, with surrounding context.
- Example: search_transcript(path="/videos/talk.mp4", query="roadmap", context_segments=2)

### get_subtitles
Export captions as SRT or WebVTT.
- Speaker labels are a placeholder rotation, not real diarization
- Example: get_subtitles(path="/videos/talk.mp4", format="vtt")

### cache_stats / clear_cache
Inspect or reset the local transcript cache.
"""


def main():
    settings = Settings()
    if settings.transport == Transport.STREAMABLE_HTTP:
        mcp.run(transport="streamable-http")
    else:
        mcp.run(transport="stdio")


if __name__ == "__main__":
    main()
