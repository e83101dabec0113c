"""Provider that uploads audio to the OpenAI audio transcription endpoint."""

import logging
from pathlib import Path

import httpx
from pydantic import ValidationError

from video_transcript_mcp.errors import RemoteTranscriptionError
from video_transcript_mcp.models import Segment, Transcript
from .base import TranscriptionClient

logger = logging.getLogger(__name__)


def _upstream_message(resp: httpx.Response) -> str:
    try:
        body = resp.json()
    except ValueError:
        return resp.text.strip() or f"HTTP {resp.status_code}"
    error = body.get("error") if isinstance(body, dict) else None
    if isinstance(error, dict) and error.get("message"):
        return error["message"]
    return f"HTTP {resp.status_code}"


class WhisperAPIClient(TranscriptionClient):
    def __init__(
        self,
        api_key: str,
        base_url: str = "https://api.openai.com/v1",
        model: str = "whisper-1",
        language: str = "en",
        timeout: float = 300.0,
    ):
        self._base_url = base_url.rstrip("/")
        self.model = model
        self.language = language
        self._headers = {}
        if api_key:
            self._headers["Authorization"] = f"Bearer {api_key}"
        self._client = httpx.AsyncClient(
            base_url=self._base_url,
            headers=self._headers,
            timeout=timeout,
        )

    async def transcribe(self, audio_path: Path) -> Transcript:
        logger.info(f"Calling {self.model} for {audio_path.name}")
        data = {
            "model": self.model,
            "response_format": "verbose_json",
            "timestamp_granularities[]": "segment",
            "language": self.language,
        }
        files = {"file": (audio_path.name, audio_path.read_bytes(), "audio/mpeg")}

        try:
            resp = await self._client.post("/audio/transcriptions", data=data, files=files)
        except httpx.HTTPError as e:
            raise RemoteTranscriptionError(f"Transcription request failed: {e}") from e
        if resp.is_error:
            raise RemoteTranscriptionError(_upstream_message(resp))

        try:
            body = resp.json()
            segments = [Segment(**s) for s in body.get("segments") or []]
        except (ValueError, TypeError, AttributeError, ValidationError) as e:
            raise RemoteTranscriptionError(f"Unexpected transcription response: {e}") from e

        logger.debug(f"Received {len(segments)} segments for {audio_path.name}")
        return Transcript(
            text=(body.get("text") or "").strip(),
            segments=segments,
            language=body.get("language") or self.language,
        )

    async def close(self) -> None:
        await self._client.aclose()
