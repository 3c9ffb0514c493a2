# File: keyshift/core/audio_extractor.py
"""ffprobe/ffmpeg stages: duration probing and decode-for-analysis."""
import logging
from pathlib import Path
from typing import List, Optional

import ffmpeg as ffmpeg_python
import numpy as np

from ..config import Settings
from ..utils.process_runner import ProcessRunner

logger = logging.getLogger(__name__)


def probe_args(audio_path: Path) -> List[str]:
    return [
        "-v", "error",
        "-show_entries", "format=duration",
        "-of", "default=noprint_wrappers=1:nokey=1",
        str(audio_path),
    ]


def decode_command(audio_path: Path, settings: Settings) -> List[str]:
    """
    ffmpeg command decoding the first ANALYSIS_MAX_SECONDS of a file to raw
    little-endian float32 mono PCM on stdout.
    """
    stream = ffmpeg_python.input(str(audio_path), t=settings.ANALYSIS_MAX_SECONDS)
    # ac=1: mono, f32le: raw float32 samples in [-1, 1]
    stream = ffmpeg_python.output(
        stream,
        "pipe:",
        format="f32le",
        acodec="pcm_f32le",
        ac=1,
        ar=str(settings.ANALYSIS_SAMPLE_RATE),
        vn=None,
        loglevel="error",
    )
    return ffmpeg_python.compile(stream, cmd=settings.FFMPEG_BIN)


def parse_probe_duration(raw: str) -> float:
    """First parseable, finite number in ffprobe output; 0 when there is none."""
    for line in raw.splitlines():
        try:
            value = float(line.strip())
        except ValueError:
            continue
        if np.isfinite(value):
            return value
    return 0.0


async def probe_duration(track_id: str, audio_path: Path, runner: ProcessRunner, settings: Settings) -> float:
    """True duration of the downloaded file. Returns 0.0 on any failure."""
    result = await runner.run(settings.FFPROBE_BIN, probe_args(audio_path), timeout=settings.PROBE_TIMEOUT)
    if not result.ok:
        logger.warning(f"Track {track_id}: ffprobe failed (exit {result.exit_code}): {result.stderr_tail()}")
        return 0.0
    duration = parse_probe_duration(result.stdout_text())
    logger.info(f"Track {track_id}: Probed duration {duration:.2f}s")
    return duration


async def decode_for_analysis(
    track_id: str, audio_path: Path, runner: ProcessRunner, settings: Settings
) -> Optional[np.ndarray]:
    """
    Decodes a bounded prefix of the file to mono float32 PCM at
    ANALYSIS_SAMPLE_RATE. Returns None on failure.
    """
    command = decode_command(audio_path, settings)
    result = await runner.run(command[0], command[1:], timeout=settings.DECODE_TIMEOUT)
    if not result.ok:
        logger.warning(f"Track {track_id}: ffmpeg decode failed (exit {result.exit_code}): {result.stderr_tail()}")
        return None

    # Drop a trailing partial sample, if any
    usable = len(result.stdout) - (len(result.stdout) % 4)
    samples = np.frombuffer(result.stdout[:usable], dtype="<f4")
    logger.info(
        f"Track {track_id}: Decoded {len(samples)} samples "
        f"({len(samples) / settings.ANALYSIS_SAMPLE_RATE:.1f}s @ {settings.ANALYSIS_SAMPLE_RATE} Hz) for analysis"
    )
    return samples
