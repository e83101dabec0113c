"""Utility functions."""

_VIDEO_MIME_TYPES = {
    "mp4": "video/mp4",
    "webm": "video/webm",
    "ogg": "video/ogg",
    "ogv": "video/ogg",
    "mov": "video/mp4",
    "m4v": "video/mp4",
    "avi": "video/x-msvideo",
    "mkv": "video/x-matroska",
    "flv": "video/x-flv",
}


def format_timestamp(seconds: float) -> str:
    """Format seconds to HH:MM:SS or MM:SS."""
    h = int(seconds // 3600)
    m = int((seconds % 3600) // 60)
    s = int(seconds % 60)
    if h > 0:
        return f"{h}:{m:02d}:{s:02d}"
    return f"{m}:{s:02d}"


def format_caption_time(seconds: float, separator: str = ",") -> str:
    """Format seconds to HH:MM:SS,mmm (SRT) or HH:MM:SS.mmm (WebVTT)."""
    total_ms = int(round(max(seconds, 0.0) * 1000))
    hours, rem = divmod(total_ms, 3_600_000)
    minutes, rem = divmod(rem, 60_000)
    secs, ms = divmod(rem, 1000)
    return f"{hours:02d}:{minutes:02d}:{secs:02d}{separator}{ms:03d}"


def bytes_to_mb(size: int) -> float:
    return round(size / 1024 / 1024, 2)


def video_mime_type(filename: str) -> str:
    """Guess a playback MIME type from the file extension, defaulting to mp4."""
    extension = filename.rsplit(".", 1)[-1].lower() if "." in filename else ""
    return _VIDEO_MIME_TYPES.get(extension, "video/mp4")
