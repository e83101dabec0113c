"""Configuration via environment variables."""

import shutil
from enum import Enum
from pathlib import Path

from pydantic_settings import BaseSettings


class Transport(str, Enum):
    STDIO = "stdio"
    STREAMABLE_HTTP = "streamable-http"


class Settings(BaseSettings):
    model_config = {"env_prefix": "VT_MCP_"}

    # Remote transcription
    openai_api_key: str = ""
    api_base_url: str = "https://api.openai.com/v1"
    transcription_model: str = "whisper-1"
    language: str = "en"
    request_timeout_seconds: float = 300.0

    # External media tools
    ffmpeg_binary: str = shutil.which("ffmpeg") or "ffmpeg"
    ffprobe_binary: str = shutil.which("ffprobe") or "ffprobe"
    audio_sample_rate: int = 16000
    audio_channels: int = 1
    audio_bitrate: str = "64k"

    # Upload limits: ~25 MB per request, so long audio is split by duration
    single_shot_max_seconds: float = 2700.0
    chunk_seconds: float = 1200.0

    cache_path: Path = Path.home() / ".video-transcript-mcp" / "transcription_cache.json"
    cache_memory_entries: int = 32
    temp_dir: Path | None = None

    transport: Transport = Transport.STDIO
