"""Exceptions raised by the transcription pipeline."""


class TranscriptionPipelineError(Exception):
    """Base exception for every pipeline stage."""


class ProbeError(TranscriptionPipelineError):
    """Duration could not be determined for a media file."""


class ExtractionError(TranscriptionPipelineError):
    """Audio track could not be extracted from a video."""


class SplitError(TranscriptionPipelineError):
    """An audio chunk could not be produced."""


class RemoteTranscriptionError(TranscriptionPipelineError):
    """The speech-to-text API rejected or failed a request."""


class CacheIOError(TranscriptionPipelineError):
    """The transcript cache file could not be read or written."""
