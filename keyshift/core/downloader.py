# File: keyshift/core/downloader.py
"""yt-dlp stages: URL validation, metadata lookup and audio acquisition."""
import json
import logging
from pathlib import Path
from typing import Iterable, List
from urllib.parse import urlsplit

from ..config import Settings
from ..exceptions import AcquisitionFailed, InvalidInput
from ..utils.process_runner import ProcessRunner

logger = logging.getLogger(__name__)


def validate_source_url(url: str, allowed_hosts: Iterable[str], allowed_schemes: Iterable[str] = ("http", "https")) -> str:
    """
    Checks the URL against the scheme/host allow-list.
    Returns the stripped URL or raises InvalidInput.
    """
    candidate = (url or "").strip()
    if not candidate:
        raise InvalidInput("Missing YouTube URL.")
    try:
        parts = urlsplit(candidate)
        hostname = (parts.hostname or "").lower()
    except ValueError:
        raise InvalidInput("Invalid or missing YouTube URL.")
    if parts.scheme.lower() not in set(allowed_schemes) or hostname not in set(allowed_hosts):
        logger.info(f"Rejected URL outside allow-list: '{candidate[:100]}'")
        raise InvalidInput("Invalid or missing YouTube URL.")
    return candidate


def metadata_args(url: str, settings: Settings) -> List[str]:
    return [
        "-J",
        "--no-playlist",
        "--no-warnings",
        "--socket-timeout", str(settings.YTDLP_SOCKET_TIMEOUT),
        url,
    ]


def download_args(url: str, target: Path, settings: Settings) -> List[str]:
    # yt-dlp substitutes %(ext)s, then the extract-audio postprocessor
    # leaves exactly <stem>.<AUDIO_FORMAT>
    output_template = str(target.with_suffix(".%(ext)s"))
    args = [
        "-f", "bestaudio/best",
        "-x",
        "--audio-format", settings.AUDIO_FORMAT,
        "--no-playlist",
        "--no-part",
        "--no-progress",
        "--quiet",
        "--no-warnings",
        "--socket-timeout", str(settings.YTDLP_SOCKET_TIMEOUT),
        "--retries", str(settings.YTDLP_RETRIES),
        "-o", output_template,
    ]
    if settings.FFMPEG_BIN != "ffmpeg":
        args += ["--ffmpeg-location", settings.FFMPEG_BIN]
    return args + [url]


def parse_metadata_duration(raw: str) -> float:
    """Pulls a non-negative duration from yt-dlp's -J output; 0 when absent."""
    info = json.loads(raw)
    if info.get("_type") == "playlist" and info.get("entries"):
        info = info["entries"][0] or {}
    duration = info.get("duration")
    if isinstance(duration, (int, float)) and not isinstance(duration, bool) and duration > 0:
        return float(duration)
    return 0.0


async def lookup_duration(track_id: str, url: str, runner: ProcessRunner, settings: Settings) -> float:
    """
    Best-effort nominal duration from yt-dlp metadata. Never raises for
    process or parse failures; returns 0.0 instead.
    """
    result = await runner.run(settings.YTDLP_BIN, metadata_args(url, settings), timeout=settings.METADATA_TIMEOUT)
    if not result.ok:
        logger.warning(
            f"Track {track_id}: yt-dlp metadata lookup failed (exit {result.exit_code}): {result.stderr_tail()}"
        )
        return 0.0
    try:
        duration = parse_metadata_duration(result.stdout_text())
    except (ValueError, AttributeError, IndexError) as e:
        logger.warning(f"Track {track_id}: Failed to parse yt-dlp JSON: {e}")
        return 0.0
    logger.info(f"Track {track_id}: Metadata duration {duration:.1f}s")
    return duration


async def download_audio(track_id: str, url: str, target: Path, runner: ProcessRunner, settings: Settings) -> Path:
    """
    Downloads and transcodes the source to ``target``.
    Raises AcquisitionFailed when yt-dlp fails or the target is missing afterwards.
    """
    target.parent.mkdir(parents=True, exist_ok=True)
    logger.info(f"Track {track_id}: Downloading audio to cache: {target}")

    result = await runner.run(settings.YTDLP_BIN, download_args(url, target, settings), timeout=settings.DOWNLOAD_TIMEOUT)
    if not result.ok:
        error_tail = result.stderr_tail()
        logger.error(f"Track {track_id}: yt-dlp download failed with code {result.exit_code}: {error_tail}")
        error_message = error_tail.lower()
        if "private video" in error_message:
            raise AcquisitionFailed("Failed to download audio: video is private.")
        elif "video unavailable" in error_message:
            raise AcquisitionFailed("Failed to download audio: video is unavailable.")
        elif "login required" in error_message or "sign in" in error_message:
            raise AcquisitionFailed("Failed to download audio: video requires login.")
        elif "timed out" in error_message:
            raise AcquisitionFailed("Failed to download audio: network timeout.")
        raise AcquisitionFailed()

    if not target.is_file() or target.stat().st_size == 0:
        files_in_cache = sorted(p.name for p in target.parent.glob(f"{track_id}.*"))
        logger.error(f"Track {track_id}: Downloaded file {target.name} not found after download. Files present: {files_in_cache}")
        raise AcquisitionFailed("Failed to download audio: no audio file was produced.")

    logger.info(f"Track {track_id}: Successfully downloaded audio ({target.stat().st_size} bytes)")
    return target
