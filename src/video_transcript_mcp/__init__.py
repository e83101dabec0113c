"""Video transcription MCP server with chunked Whisper transcription and captions."""

__version__ = "0.1.0"
