"""HTTP-level tests against the FastAPI application."""
import pytest
from fastapi.testclient import TestClient

from keyshift import __version__
from keyshift.app import create_app
from keyshift.utils.process_runner import ProcessResult
from keyshift.utils.track_registry import TrackRegistry

from conftest import FakeRunner


@pytest.fixture
def client(test_settings, fake_runner, registry):
    app = create_app(test_settings, runner=fake_runner, registry=registry)
    with TestClient(app) as test_client:
        yield test_client


@pytest.fixture
def prepared(client, valid_url) -> dict:
    response = client.post("/api/prepare", json={"url": valid_url})
    assert response.status_code == 200, response.text
    return response.json()


class TestPrepareEndpoint:
    def test_post_prepare(self, client, valid_url) -> None:
        response = client.post("/api/prepare", json={"url": valid_url})

        assert response.status_code == 200
        body = response.json()
        assert len(body["track_id"]) == 32
        assert body["duration"] == pytest.approx(213.4)
        assert body["key"]["name"] == "C"
        assert body["key"]["tonic"] == "C"
        assert body["key"]["mode"] == "major"
        assert body["key"]["confidence"] in ("low", "high")

    def test_get_prepare(self, client, valid_url) -> None:
        response = client.get("/api/prepare", params={"url": valid_url})

        assert response.status_code == 200
        assert response.json()["duration"] == pytest.approx(213.4)

    def test_key_is_null_when_decode_fails(self, client, fake_runner, valid_url) -> None:
        fake_runner.decode = ProcessResult(1, b"", b"boom")

        response = client.post("/api/prepare", json={"url": valid_url})

        assert response.status_code == 200
        assert response.json()["key"] is None

    @pytest.mark.parametrize("url", ["https://example.com/watch?v=x", "   ", "javascript:alert(1)"])
    def test_invalid_url_is_400(self, client, fake_runner, url) -> None:
        response = client.post("/api/prepare", json={"url": url})

        assert response.status_code == 400
        assert "detail" in response.json()
        assert fake_runner.calls == []

    def test_missing_url_is_rejected(self, client) -> None:
        response = client.post("/api/prepare", json={})
        assert response.status_code == 422

    def test_download_failure_is_502(self, client, fake_runner, registry, valid_url) -> None:
        fake_runner.download = ProcessResult(1, b"", b"ERROR: Private video. Sign in if you've been granted access")

        response = client.post("/api/prepare", json={"url": valid_url})

        assert response.status_code == 502
        assert "private" in response.json()["detail"]
        assert len(registry) == 0


class TestAudioEndpoint:
    def test_full_stream(self, client, prepared, fake_runner) -> None:
        response = client.get(f"/api/audio/{prepared['track_id']}")

        assert response.status_code == 200
        assert response.headers["content-type"] == "audio/mpeg"
        assert response.headers["accept-ranges"] == "bytes"
        assert response.content == fake_runner.audio_bytes

    def test_range_request(self, client, prepared, fake_runner) -> None:
        size = len(fake_runner.audio_bytes)

        response = client.get(f"/api/audio/{prepared['track_id']}", headers={"Range": "bytes=0-99"})

        assert response.status_code == 206
        assert response.headers["content-range"] == f"bytes 0-99/{size}"
        assert response.content == fake_runner.audio_bytes[:100]

    def test_unsatisfiable_range(self, client, prepared, fake_runner) -> None:
        size = len(fake_runner.audio_bytes)

        response = client.get(f"/api/audio/{prepared['track_id']}", headers={"Range": "bytes=500-200"})

        assert response.status_code == 416
        assert response.headers["content-range"] == f"bytes */{size}"

    @pytest.mark.parametrize("headers", [{}, {"Range": "bytes=0-99"}])
    def test_unknown_track_is_404(self, client, headers) -> None:
        response = client.get(f"/api/audio/{'f' * 32}", headers=headers)
        assert response.status_code == 404

    def test_evicted_track_is_404(self, client, prepared, registry, clock, test_settings) -> None:
        clock.advance(test_settings.TRACK_TTL_SECONDS + 1)
        registry.evict_expired(clock(), test_settings.TRACK_TTL_SECONDS)

        response = client.get(f"/api/audio/{prepared['track_id']}")

        assert response.status_code == 404


class TestTrackEndpoint:
    def test_track_metadata(self, client, prepared, clock, test_settings) -> None:
        response = client.get(f"/api/tracks/{prepared['track_id']}")

        assert response.status_code == 200
        body = response.json()
        assert body["track_id"] == prepared["track_id"]
        assert body["key"] == prepared["key"]
        assert body["created_at"] == pytest.approx(clock.now)
        assert body["expires_at"] == pytest.approx(clock.now + test_settings.TRACK_TTL_SECONDS)

    def test_unknown_track(self, client) -> None:
        assert client.get(f"/api/tracks/{'0' * 32}").status_code == 404


class TestSystemEndpoints:
    def test_health_counts_tracks(self, client, prepared) -> None:
        response = client.get("/health")

        assert response.status_code == 200
        assert response.json() == {"status": "ok", "tracks": 1}

    def test_version(self, client) -> None:
        body = client.get("/version").json()
        assert body["version"] == __version__
        assert body["yt_dlp"]


def test_stale_prepare_over_http_is_409(test_settings, registry, valid_url) -> None:
    runner = FakeRunner(test_settings)
    app = create_app(test_settings, runner=runner, registry=registry)
    app.state.pipeline.tokens.observe("tab-1", 5)

    with TestClient(app) as client:
        response = client.post(
            "/api/prepare", json={"url": valid_url, "client_id": "tab-1", "request_token": 4}
        )

    assert response.status_code == 409
    assert len(registry) == 0


def test_app_uses_the_injected_empty_registry(test_settings, fake_runner, clock) -> None:
    registry = TrackRegistry(clock=clock)
    assert len(registry) == 0

    app = create_app(test_settings, runner=fake_runner, registry=registry)

    assert app.state.registry is registry
    assert app.state.pipeline.registry is registry
    assert app.state.janitor.registry is registry
    assert app.state.pipeline.runner is fake_runner
    assert app.state.settings is test_settings
    assert app.state.janitor.tokens is app.state.pipeline.tokens
