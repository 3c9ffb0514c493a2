"""Tests for Range parsing and the streaming responder."""
import asyncio
from pathlib import Path

import pytest

from keyshift.core.streaming import iter_file_range, parse_range_header, stream_track
from keyshift.exceptions import RangeNotSatisfiable, TrackNotFound
from keyshift.schemas.tracks import TrackEntry
from keyshift.utils.track_registry import TrackRegistry

FILE_SIZE = 1000
MEDIA_TYPE = "audio/mpeg"


@pytest.fixture
def audio_file(tmp_path: Path) -> Path:
    path = tmp_path / "track.mp3"
    path.write_bytes(bytes(i % 251 for i in range(FILE_SIZE)))
    return path


@pytest.fixture
def track_id(registry: TrackRegistry, audio_file: Path) -> str:
    return registry.register(TrackEntry(file_path=audio_file, duration=10.0))


async def collect(response) -> bytes:
    return b"".join([chunk async for chunk in response.body_iterator])


class TestParseRangeHeader:
    @pytest.mark.parametrize(
        "header, expected",
        [
            ("bytes=0-99", (0, 99)),
            ("bytes=500-", (500, 999)),
            ("bytes=0-0", (0, 0)),
            ("bytes=999-999", (999, 999)),
            ("bytes=900-5000", (900, 999)),
            ("  bytes=10-19  ", (10, 19)),
        ],
    )
    def test_valid_ranges(self, header, expected) -> None:
        assert parse_range_header(header, FILE_SIZE) == expected

    @pytest.mark.parametrize(
        "header",
        [
            "bytes=500-200",
            "bytes=1000-",
            "bytes=1000-1200",
            "bytes=-100",
            "bytes=0-99,200-299",
            "items=0-99",
            "bytes=a-b",
            "",
        ],
    )
    def test_unsatisfiable_ranges(self, header) -> None:
        with pytest.raises(RangeNotSatisfiable) as exc_info:
            parse_range_header(header, FILE_SIZE)
        assert exc_info.value.status_code == 416
        assert exc_info.value.file_size == FILE_SIZE


class TestIterFileRange:
    def test_reads_exact_slice_in_chunks(self, audio_file: Path) -> None:
        file_obj = open(audio_file, "rb")
        chunks = list(iter_file_range(file_obj, 100, 250, chunk_size=64))
        assert [len(c) for c in chunks] == [64, 64, 64, 58]
        assert b"".join(chunks) == audio_file.read_bytes()[100:350]
        assert file_obj.closed

    def test_closing_early_closes_file(self, audio_file: Path) -> None:
        file_obj = open(audio_file, "rb")
        stream = iter_file_range(file_obj, 0, FILE_SIZE, chunk_size=10)
        next(stream)
        stream.close()
        assert file_obj.closed


class TestStreamTrack:
    @pytest.mark.asyncio
    async def test_full_file_without_range(self, registry, track_id, audio_file) -> None:
        response = stream_track(registry, track_id, None, MEDIA_TYPE)

        assert response.status_code == 200
        assert response.headers["content-length"] == str(FILE_SIZE)
        assert response.headers["accept-ranges"] == "bytes"
        assert response.media_type == MEDIA_TYPE
        assert await collect(response) == audio_file.read_bytes()

    @pytest.mark.asyncio
    async def test_partial_content(self, registry, track_id, audio_file) -> None:
        response = stream_track(registry, track_id, "bytes=0-99", MEDIA_TYPE)

        assert response.status_code == 206
        assert response.headers["content-range"] == "bytes 0-99/1000"
        assert response.headers["content-length"] == "100"
        body = await collect(response)
        assert len(body) == 100
        assert body == audio_file.read_bytes()[:100]

    @pytest.mark.asyncio
    async def test_open_ended_range(self, registry, track_id, audio_file) -> None:
        response = stream_track(registry, track_id, "bytes=990-", MEDIA_TYPE, chunk_size=4)

        assert response.status_code == 206
        assert response.headers["content-range"] == "bytes 990-999/1000"
        assert await collect(response) == audio_file.read_bytes()[990:]

    def test_start_after_end_is_416(self, registry, track_id) -> None:
        with pytest.raises(RangeNotSatisfiable):
            stream_track(registry, track_id, "bytes=500-200", MEDIA_TYPE)

    @pytest.mark.parametrize("range_header", [None, "bytes=0-99"])
    def test_unknown_track_is_not_found(self, registry, range_header) -> None:
        with pytest.raises(TrackNotFound):
            stream_track(registry, "0" * 32, range_header, MEDIA_TYPE)

    def test_unknown_track_wins_over_bad_range(self, registry) -> None:
        with pytest.raises(TrackNotFound):
            stream_track(registry, "0" * 32, "bytes=500-200", MEDIA_TYPE)

    def test_missing_backing_file_is_not_found(self, registry, track_id, audio_file) -> None:
        audio_file.unlink()
        with pytest.raises(TrackNotFound):
            stream_track(registry, track_id, None, MEDIA_TYPE)

    @pytest.mark.asyncio
    async def test_concurrent_readers_get_independent_streams(self, registry, track_id, audio_file) -> None:
        first = stream_track(registry, track_id, "bytes=0-499", MEDIA_TYPE, chunk_size=50)
        second = stream_track(registry, track_id, "bytes=500-999", MEDIA_TYPE, chunk_size=50)

        a, b = await asyncio.gather(collect(first), collect(second))

        assert a + b == audio_file.read_bytes()

    @pytest.mark.asyncio
    async def test_eviction_after_headers_still_serves_body(self, registry, track_id, audio_file, clock) -> None:
        response = stream_track(registry, track_id, "bytes=0-99", MEDIA_TYPE)
        expected = audio_file.read_bytes()[:100]

        clock.advance(10)
        assert registry.evict_expired(clock(), 5) == [track_id]
        assert not audio_file.exists()

        assert await collect(response) == expected
        with pytest.raises(TrackNotFound):
            stream_track(registry, track_id, "bytes=0-99", MEDIA_TYPE)

    def test_unsatisfiable_range_does_not_leak_handle(self, registry, track_id, audio_file, monkeypatch) -> None:
        opened = []
        real_open = open

        def tracking_open(*args, **kwargs):
            handle = real_open(*args, **kwargs)
            opened.append(handle)
            return handle

        monkeypatch.setattr("keyshift.core.streaming.open", tracking_open, raising=False)
        with pytest.raises(RangeNotSatisfiable):
            stream_track(registry, track_id, "bytes=2000-", MEDIA_TYPE)

        assert opened and all(handle.closed for handle in opened)
