"""
Shared fixtures for the test suite.

The pipeline never touches real executables here: FakeRunner plays the part
of yt-dlp, ffprobe and ffmpeg.
"""
import asyncio
import json
from pathlib import Path
from typing import Callable, Dict, List, Optional, Sequence, Tuple, Union

import numpy as np
import pytest

from keyshift.config import Settings
from keyshift.utils.process_runner import ProcessResult
from keyshift.utils.track_registry import TrackRegistry

SAMPLE_RATE = 11025

# ---------------------------------------------------------------------------
# Signal helpers
# ---------------------------------------------------------------------------


def midi_to_hz(midi: int) -> float:
    return 440.0 * 2.0 ** ((midi - 69) / 12.0)


def tone(midis: Sequence[int], seconds: float = 2.0, sample_rate: int = SAMPLE_RATE) -> np.ndarray:
    """Equal-amplitude sum of sines, scaled into [-1, 1]."""
    t = np.arange(int(seconds * sample_rate)) / sample_rate
    signal = sum(np.sin(2.0 * np.pi * midi_to_hz(m) * t) for m in midis)
    return (signal / len(midis)).astype(np.float64)


def pcm_bytes(samples: np.ndarray) -> bytes:
    return samples.astype("<f4").tobytes()


# ---------------------------------------------------------------------------
# Fake process runner
# ---------------------------------------------------------------------------

Handler = Union[ProcessResult, Callable[[str, List[str]], ProcessResult]]


class FakeRunner:
    """
    Scripted stand-in for yt-dlp / ffprobe / ffmpeg.

    Each stage has a default successful behaviour that can be replaced with a
    ProcessResult or a callable. The download stage writes the target file
    the way yt-dlp would.
    """

    def __init__(self, settings: Settings, delay: float = 0.0):
        self.settings = settings
        self.delay = delay
        self.calls: List[Tuple[str, List[str]]] = []
        self.audio_bytes = b"ID3" + bytes(range(256)) * 8
        self.metadata: Handler = ProcessResult(0, json.dumps({"id": "abc", "duration": 212}).encode())
        self.download: Optional[Handler] = None
        self.probe: Handler = ProcessResult(0, b"213.4\n")
        self.decode: Handler = ProcessResult(0, pcm_bytes(tone([60, 64, 67])))

    def stage_of(self, command: str, args: List[str]) -> str:
        if command == self.settings.YTDLP_BIN:
            return "metadata" if "-J" in args else "download"
        if command == self.settings.FFPROBE_BIN:
            return "probe"
        if command == self.settings.FFMPEG_BIN:
            return "decode"
        raise AssertionError(f"Unexpected command: {command}")

    def stages(self) -> List[str]:
        return [self.stage_of(command, args) for command, args in self.calls]

    def download_target(self, args: List[str]) -> Path:
        template = args[args.index("-o") + 1]
        return Path(template.replace("%(ext)s", self.settings.AUDIO_FORMAT))

    def _default_download(self, command: str, args: List[str]) -> ProcessResult:
        self.download_target(args).write_bytes(self.audio_bytes)
        return ProcessResult(0)

    async def run(self, command: str, args: Sequence[str], timeout: Optional[float] = None) -> ProcessResult:
        args = list(args)
        self.calls.append((command, args))
        if self.delay:
            await asyncio.sleep(self.delay)
        stage = self.stage_of(command, args)
        handler: Optional[Handler] = getattr(self, stage)
        if handler is None:
            handler = self._default_download
        if callable(handler):
            return handler(command, args)
        return handler


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def test_settings(tmp_path: Path) -> Settings:
    settings = Settings()
    settings.CACHE_DIR = tmp_path / "cache"
    settings.CACHE_DIR.mkdir()
    settings.YTDLP_BIN = "yt-dlp"
    settings.FFMPEG_BIN = "ffmpeg"
    settings.FFPROBE_BIN = "ffprobe"
    settings.ALLOWED_HOSTS_STR = "youtube.com,www.youtube.com,youtu.be"
    settings.AUDIO_FORMAT = "mp3"
    settings.TRACK_TTL_SECONDS = 3600
    settings.CLEANUP_INTERVAL_SECONDS = 600
    return settings


@pytest.fixture
def fake_runner(test_settings: Settings) -> FakeRunner:
    return FakeRunner(test_settings)


class FakeClock:
    def __init__(self, now: float = 1_000_000.0):
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def registry(clock: FakeClock) -> TrackRegistry:
    return TrackRegistry(clock=clock)


@pytest.fixture
def valid_url() -> str:
    return "https://www.youtube.com/watch?v=dQw4w9WgXcQ"
