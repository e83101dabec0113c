"""Content-addressed transcript cache backed by a single JSON file."""

import hashlib
import json
import logging
import os
from abc import ABC, abstractmethod
from datetime import datetime, timezone
from pathlib import Path

from cachetools import LRUCache
from pydantic import ValidationError

from video_transcript_mcp.errors import CacheIOError
from video_transcript_mcp.models import (
    CacheEntry,
    CacheStats,
    CacheStatsEntry,
    Metadata,
    Transcript,
)

logger = logging.getLogger(__name__)


def fingerprint(raw_bytes: bytes) -> str:
    """SHA-256 of the raw input; the filename plays no part."""
    return hashlib.sha256(raw_bytes).hexdigest()


def fingerprint_file(path: Path) -> str:
    """Same digest as :func:`fingerprint`, streamed in 64kb blocks."""
    sha256_hash = hashlib.sha256()
    with open(path, "rb") as f:
        for byte_block in iter(lambda: f.read(65536), b""):
            sha256_hash.update(byte_block)
    return sha256_hash.hexdigest()


class CacheStorage(ABC):
    @abstractmethod
    def load(self) -> dict[str, dict]:
        """Return every stored entry keyed by fingerprint."""
        ...

    @abstractmethod
    def save(self, entries: dict[str, dict]) -> None:
        """Persist the full mapping, replacing what was stored."""
        ...

    @abstractmethod
    def clear(self) -> None:
        ...


class MemoryStorage(CacheStorage):
    def __init__(self):
        self._data: dict[str, dict] = {}

    def load(self) -> dict[str, dict]:
        return dict(self._data)

    def save(self, entries: dict[str, dict]) -> None:
        self._data = dict(entries)

    def clear(self) -> None:
        self._data = {}


class JsonFileStorage(CacheStorage):
    """Whole-file JSON persistence. No locking: one process, one writer."""

    def __init__(self, path: Path):
        self.path = Path(path)

    def load(self) -> dict[str, dict]:
        if not self.path.exists():
            return {}
        try:
            data = json.loads(self.path.read_text(encoding="utf-8"))
        except (OSError, ValueError) as e:
            raise CacheIOError(f"Failed to read cache file {self.path}: {e}") from e
        if not isinstance(data, dict):
            raise CacheIOError(f"Cache file {self.path} does not contain a mapping")
        return data

    def save(self, entries: dict[str, dict]) -> None:
        tmp_path = self.path.with_name(self.path.name + ".tmp")
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            tmp_path.write_text(json.dumps(entries, indent=2), encoding="utf-8")
            os.replace(tmp_path, self.path)
        except OSError as e:
            raise CacheIOError(f"Failed to write cache file {self.path}: {e}") from e

    def clear(self) -> None:
        try:
            self.path.unlink(missing_ok=True)
        except OSError as e:
            raise CacheIOError(f"Failed to delete cache file {self.path}: {e}") from e


class TranscriptCache:
    """Maps file fingerprints to finished transcripts.

    The raw mapping is loaded from storage once, on first use. Validated
    entries are kept in a small LRU so repeated hits on long transcripts skip
    re-parsing. A storage load failure leaves the cache empty.
    """

    def __init__(self, storage: CacheStorage, memory_entries: int = 32):
        self._storage = storage
        self._raw: dict[str, dict] | None = None
        self._parsed: LRUCache = LRUCache(maxsize=max(memory_entries, 1))
        self._hits = 0
        self._misses = 0

    def _entries(self) -> dict[str, dict]:
        if self._raw is None:
            try:
                self._raw = self._storage.load()
            except CacheIOError as e:
                logger.warning(f"Ignoring unreadable cache: {e}")
                self._raw = {}
            logger.debug(f"Loaded {len(self._raw)} cache entries")
        return self._raw

    def _entry(self, key: str) -> CacheEntry | None:
        entry = self._parsed.get(key)
        if entry is not None:
            return entry
        raw = self._entries().get(key)
        if raw is None:
            return None
        try:
            entry = CacheEntry.model_validate(raw)
        except ValidationError as e:
            logger.warning(f"Discarding malformed cache entry {key[:12]}: {e}")
            return None
        self._parsed[key] = entry
        return entry

    def get(self, key: str) -> CacheEntry | None:
        entry = self._entry(key)
        if entry is None:
            self._misses += 1
            return None
        self._hits += 1
        metadata = entry.metadata.model_copy(
            update={"from_cache": True, "cached_at": entry.cached_at}
        )
        return entry.model_copy(update={"metadata": metadata})

    def put(
        self, key: str, filename: str, transcript: Transcript, metadata: Metadata
    ) -> CacheEntry:
        entry = CacheEntry(
            filename=filename,
            transcript=transcript,
            metadata=metadata,
            cached_at=datetime.now(timezone.utc),
        )
        updated = {**self._entries(), key: entry.model_dump(mode="json")}
        self._storage.save(updated)
        self._raw = updated
        self._parsed.pop(key, None)
        logger.info(f"Cached transcript for {filename} ({key[:12]})")
        return entry

    def stats(self) -> CacheStats:
        listing = []
        for key in self._entries():
            entry = self._entry(key)
            if entry is None:
                continue
            listing.append(
                CacheStatsEntry(
                    filename=entry.filename,
                    duration=entry.metadata.duration_seconds,
                    cached_at=entry.cached_at,
                    segment_count=len(entry.transcript.segments),
                )
            )
        return CacheStats(
            total_entries=len(listing),
            entries=listing,
            hits=self._hits,
            misses=self._misses,
        )

    def clear(self) -> None:
        self._raw = {}
        self._parsed.clear()
        self._storage.clear()
        logger.info("Cache cleared")
