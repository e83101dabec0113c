"""End-to-end pipeline tests with ffmpeg/ffprobe and the remote API faked."""

from unittest.mock import patch

import pytest

from conftest import FakeClient, fake_media_tools
from video_transcript_mcp.cache import CacheStorage, MemoryStorage, TranscriptCache
from video_transcript_mcp.config import Settings
from video_transcript_mcp.errors import CacheIOError, RemoteTranscriptionError
from video_transcript_mcp.media import AudioExtractor, ChunkSplitter, MediaProber
from video_transcript_mcp.models import Segment, Transcript
from video_transcript_mcp.orchestrator import ChunkedTranscriber
from video_transcript_mcp.pipeline import TranscriptionPipeline
from video_transcript_mcp.providers.whisper_api import WhisperAPIClient

RUN = "video_transcript_mcp.media.subprocess.run"


class FailingStorage(CacheStorage):
    def load(self):
        return {}

    def save(self, entries):
        raise CacheIOError("read-only filesystem")

    def clear(self):
        raise CacheIOError("read-only filesystem")


@pytest.fixture
def work_dir(tmp_path):
    path = tmp_path / "work"
    path.mkdir()
    return path


def make_pipeline(client, work_dir, storage=None):
    prober = MediaProber()
    extractor = AudioExtractor()
    transcriber = ChunkedTranscriber(client, ChunkSplitter(prober, extractor))
    cache = TranscriptCache(storage or MemoryStorage())
    return TranscriptionPipeline(cache, prober, extractor, transcriber, client=client, temp_dir=work_dir)


class TestPipelineRun:
    @pytest.mark.asyncio
    async def test_single_shot_success(self, work_dir, sample_transcript):
        client = FakeClient(results=[sample_transcript])
        pipeline = make_pipeline(client, work_dir)
        with patch(RUN, side_effect=fake_media_tools(duration=90.0)):
            outcome = await pipeline.run("talk.mp4", b"v" * (1024 * 1024))

        assert outcome.success is True
        assert outcome.transcript == sample_transcript
        meta = outcome.metadata
        assert meta.duration_seconds == 90.0
        assert meta.duration_minutes == 1.5
        assert meta.original_size_mb == 1.0
        assert meta.compressed_size_mb == 0.0
        assert meta.was_chunked is False
        assert meta.from_cache is False
        assert meta.cached_at is None
        assert list(work_dir.iterdir()) == []

    @pytest.mark.asyncio
    async def test_single_shot_text_matches_segments(self, work_dir, sample_transcript):
        client = FakeClient(results=[sample_transcript])
        pipeline = make_pipeline(client, work_dir)
        with patch(RUN, side_effect=fake_media_tools(duration=90.0)):
            outcome = await pipeline.run("talk.mp4", b"short video")

        transcript = outcome.transcript
        assert outcome.metadata.was_chunked is False
        assert len(client.calls) == 1
        joined = " ".join(s.text.strip() for s in transcript.segments)
        assert joined == transcript.text

    @pytest.mark.asyncio
    async def test_cache_hit_skips_all_processing(self, work_dir, sample_transcript):
        client = FakeClient(results=[sample_transcript])
        pipeline = make_pipeline(client, work_dir)
        with patch(RUN, side_effect=fake_media_tools(duration=90.0)):
            first = await pipeline.run("talk.mp4", b"same bytes")

        with patch(RUN) as run:
            second = await pipeline.run("renamed.mp4", b"same bytes")

        run.assert_not_called()
        assert len(client.calls) == 1
        assert second.success is True
        assert second.metadata.from_cache is True
        assert second.metadata.cached_at is not None
        assert second.transcript == first.transcript

    @pytest.mark.asyncio
    async def test_chunked_run(self, work_dir):
        chunk = Transcript(text="x", segments=[Segment(start=5, end=10, text="x")])
        client = FakeClient(results=[chunk])
        pipeline = make_pipeline(client, work_dir)
        with patch(RUN, side_effect=fake_media_tools(duration=3000.0)):
            outcome = await pipeline.run("lecture.mkv", b"long video")

        assert outcome.success is True
        assert outcome.metadata.was_chunked is True
        assert [s.start for s in outcome.transcript.segments] == [5, 1205, 2405]
        assert len(client.calls) == 3
        assert list(work_dir.iterdir()) == []

    @pytest.mark.asyncio
    async def test_chunk_extraction_failure(self, work_dir):
        client = FakeClient(results=[Transcript(text="x", segments=[Segment(start=0, end=1, text="x")])])
        pipeline = make_pipeline(client, work_dir)

        def fail_second_chunk(cmd):
            return "-ss" in cmd and cmd[cmd.index("-ss") + 1] == "1200"

        with patch(RUN, side_effect=fake_media_tools(duration=3000.0, fail_when=fail_second_chunk)):
            outcome = await pipeline.run("lecture.mkv", b"long video")

        assert outcome.success is False
        assert outcome.transcript is None
        assert "chunk 1" in outcome.error
        assert client.calls == []
        assert list(work_dir.iterdir()) == []
        assert pipeline.cache.stats().total_entries == 0

    @pytest.mark.asyncio
    async def test_probe_failure(self, work_dir):
        client = FakeClient()
        pipeline = make_pipeline(client, work_dir)
        with patch(RUN, side_effect=fake_media_tools(fail_when=lambda cmd: "ffprobe" in cmd[0])):
            outcome = await pipeline.run("broken.mp4", b"not a video")

        assert outcome.success is False
        assert "duration" in outcome.error
        assert list(work_dir.iterdir()) == []

    @pytest.mark.asyncio
    async def test_extraction_failure(self, work_dir):
        pipeline = make_pipeline(FakeClient(), work_dir)
        with patch(RUN, side_effect=fake_media_tools(fail_when=lambda cmd: cmd[0] == "ffmpeg")):
            outcome = await pipeline.run("silent.mp4", b"video")

        assert outcome.success is False
        assert "Audio extraction failed" in outcome.error
        assert list(work_dir.iterdir()) == []

    @pytest.mark.asyncio
    async def test_remote_failure_not_cached(self, work_dir):
        client = FakeClient(error=RemoteTranscriptionError("Invalid API key"))
        pipeline = make_pipeline(client, work_dir)
        with patch(RUN, side_effect=fake_media_tools(duration=30.0)):
            outcome = await pipeline.run("talk.mp4", b"video")

        assert outcome.success is False
        assert outcome.error == "Invalid API key"
        assert pipeline.cache.get("anything") is None
        assert pipeline.cache.stats().total_entries == 0

    @pytest.mark.asyncio
    async def test_cache_write_failure_is_not_fatal(self, work_dir, sample_transcript):
        client = FakeClient(results=[sample_transcript])
        pipeline = make_pipeline(client, work_dir, storage=FailingStorage())
        with patch(RUN, side_effect=fake_media_tools(duration=30.0)):
            outcome = await pipeline.run("talk.mp4", b"video")

        assert outcome.success is True
        assert outcome.transcript == sample_transcript

    @pytest.mark.asyncio
    async def test_filename_cannot_escape_work_dir(self, work_dir, sample_transcript):
        client = FakeClient(results=[sample_transcript])
        pipeline = make_pipeline(client, work_dir)
        with patch(RUN, side_effect=fake_media_tools(duration=30.0)) as run:
            await pipeline.run("../../etc/talk.mp4", b"video")

        probe_cmd = run.call_args_list[0].args[0]
        assert probe_cmd[-1].endswith("video_talk.mp4")
        assert str(work_dir) in probe_cmd[-1]


class TestPipelineRunFile:
    @pytest.mark.asyncio
    async def test_run_file_keeps_source(self, tmp_path, work_dir, sample_transcript):
        source = tmp_path / "talk.mp4"
        source.write_bytes(b"video on disk")
        client = FakeClient(results=[sample_transcript])
        pipeline = make_pipeline(client, work_dir)

        with patch(RUN, side_effect=fake_media_tools(duration=30.0)):
            outcome = await pipeline.run_file(source)

        assert outcome.success is True
        assert source.exists()
        assert list(work_dir.iterdir()) == []

    @pytest.mark.asyncio
    async def test_run_file_shares_cache_with_run(self, tmp_path, work_dir, sample_transcript):
        source = tmp_path / "talk.mp4"
        source.write_bytes(b"video on disk")
        client = FakeClient(results=[sample_transcript])
        pipeline = make_pipeline(client, work_dir)

        with patch(RUN, side_effect=fake_media_tools(duration=30.0)):
            await pipeline.run("upload.mp4", b"video on disk")
        with patch(RUN) as run:
            outcome = await pipeline.run_file(source)

        run.assert_not_called()
        assert outcome.metadata.from_cache is True

    @pytest.mark.asyncio
    async def test_missing_file(self, tmp_path, work_dir):
        outcome = await make_pipeline(FakeClient(), work_dir).run_file(tmp_path / "nope.mp4")
        assert outcome.success is False
        assert "File not found" in outcome.error


class TestCacheOperations:
    @pytest.mark.asyncio
    async def test_stats_and_clear(self, work_dir, sample_transcript):
        pipeline = make_pipeline(FakeClient(results=[sample_transcript]), work_dir)
        with patch(RUN, side_effect=fake_media_tools(duration=12.0)):
            await pipeline.run("talk.mp4", b"video")

        stats = pipeline.get_cache_stats()
        assert stats["total_entries"] == 1
        assert stats["entries"][0]["filename"] == "talk.mp4"
        assert stats["entries"][0]["duration"] == 12.0
        assert stats["entries"][0]["segment_count"] == 5
        assert "cached_at" in stats["entries"][0]

        assert pipeline.clear_cache() == {"success": True}
        assert pipeline.get_cache_stats() == {"total_entries": 0, "entries": []}

    def test_clear_failure(self, work_dir):
        pipeline = make_pipeline(FakeClient(), work_dir, storage=FailingStorage())
        result = pipeline.clear_cache()
        assert result["success"] is False
        assert "read-only" in result["error"]

    @pytest.mark.asyncio
    async def test_close_closes_client(self, work_dir):
        client = FakeClient()
        await make_pipeline(client, work_dir).close()
        assert client.closed is True


class TestFromSettings:
    @pytest.mark.asyncio
    async def test_builds_components(self, tmp_path):
        settings = Settings(
            openai_api_key="sk-test",
            cache_path=tmp_path / "cache.json",
            single_shot_max_seconds=600,
            chunk_seconds=300,
        )
        pipeline = TranscriptionPipeline.from_settings(settings)
        assert isinstance(pipeline._client, WhisperAPIClient)
        assert pipeline._transcriber.chunk_seconds == 300
        assert pipeline._transcriber.needs_chunking(601)
        await pipeline.close()
