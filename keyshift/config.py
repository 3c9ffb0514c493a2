# File: keyshift/config.py
"""
Centralized configuration settings for the keyshift service.
Reads from environment variables with sensible defaults.
"""
import os
import logging
import tempfile
from pathlib import Path
from typing import FrozenSet

from dotenv import load_dotenv

logger = logging.getLogger(__name__)

# Load .env file variables, but do not override existing environment variables
load_dotenv(override=False)

_DEFAULT_HOSTS = "youtube.com,www.youtube.com,m.youtube.com,music.youtube.com,youtu.be"


def _split_csv(raw: str) -> list[str]:
    return [item.strip() for item in raw.split(",") if item.strip()]


class Settings:
    CACHE_DIR: Path = Path(os.environ.get("CACHE_DIR", Path(tempfile.gettempdir()) / "keyshift-cache"))

    # --- Cache Lifecycle (in seconds) ---
    TRACK_TTL_SECONDS: float = float(os.environ.get("TRACK_TTL_SECONDS", 3600))  # 1 hour
    CLEANUP_INTERVAL_SECONDS: float = float(os.environ.get("CLEANUP_INTERVAL_SECONDS", 600))  # every 10 minutes

    # --- Input Validation ---
    ALLOWED_SCHEMES: FrozenSet[str] = frozenset({"http", "https"})
    ALLOWED_HOSTS_STR: str = os.environ.get("ALLOWED_HOSTS", _DEFAULT_HOSTS)

    @property
    def ALLOWED_HOSTS(self) -> FrozenSet[str]:
        return frozenset(host.lower() for host in _split_csv(self.ALLOWED_HOSTS_STR))

    # --- External Tools ---
    YTDLP_BIN: str = os.environ.get("YTDLP_BIN", "yt-dlp")
    FFMPEG_BIN: str = os.environ.get("FFMPEG_BIN", "ffmpeg")
    FFPROBE_BIN: str = os.environ.get("FFPROBE_BIN", "ffprobe")
    YTDLP_SOCKET_TIMEOUT: int = int(os.environ.get("YTDLP_SOCKET_TIMEOUT", 60))
    YTDLP_RETRIES: int = int(os.environ.get("YTDLP_RETRIES", 3))

    # --- Processing Timeouts (in seconds) ---
    METADATA_TIMEOUT: float = float(os.environ.get("METADATA_TIMEOUT", 60))
    DOWNLOAD_TIMEOUT: float = float(os.environ.get("DOWNLOAD_TIMEOUT", 900))  # 15 minutes
    PROBE_TIMEOUT: float = float(os.environ.get("PROBE_TIMEOUT", 30))
    DECODE_TIMEOUT: float = float(os.environ.get("DECODE_TIMEOUT", 120))

    # --- Audio ---
    AUDIO_FORMAT: str = os.environ.get("AUDIO_FORMAT", "mp3")
    ANALYSIS_MAX_SECONDS: float = float(os.environ.get("ANALYSIS_MAX_SECONDS", 60))
    ANALYSIS_SAMPLE_RATE: int = int(os.environ.get("ANALYSIS_SAMPLE_RATE", 11025))
    STREAM_CHUNK_SIZE: int = int(os.environ.get("STREAM_CHUNK_SIZE", 64 * 1024))

    # --- Server Configuration ---
    HOST: str = os.environ.get("HOST", "127.0.0.1")
    PORT: int = int(os.environ.get("PORT", 3000))

    # --- CORS Configuration ---
    _default_origins = "http://localhost,http://127.0.0.1,http://localhost:3000,http://127.0.0.1:3000"
    CORS_ORIGINS_STR: str = os.environ.get("CORS_ORIGINS", _default_origins)

    @property
    def ALLOWED_ORIGINS(self) -> list[str]:
        return _split_csv(self.CORS_ORIGINS_STR)

    @property
    def AUDIO_MEDIA_TYPE(self) -> str:
        return AUDIO_MEDIA_TYPES.get(self.AUDIO_FORMAT.lower(), "application/octet-stream")


AUDIO_MEDIA_TYPES: dict[str, str] = {
    "mp3": "audio/mpeg",
    "m4a": "audio/mp4",
    "opus": "audio/ogg",
    "ogg": "audio/ogg",
    "wav": "audio/wav",
    "flac": "audio/flac",
}

# Instantiate settings
settings = Settings()

# --- Log Final Configuration ---
logger.info("Configuration Loaded:")
logger.info(f"  - Cache Dir: {settings.CACHE_DIR}")
logger.info(f"  - Track TTL: {settings.TRACK_TTL_SECONDS:.0f}s (sweep every {settings.CLEANUP_INTERVAL_SECONDS:.0f}s)")
logger.info(f"  - Allowed Hosts: {sorted(settings.ALLOWED_HOSTS)}")
logger.info(f"  - Tools: yt-dlp='{settings.YTDLP_BIN}', ffmpeg='{settings.FFMPEG_BIN}', ffprobe='{settings.FFPROBE_BIN}'")
logger.info(f"  - Analysis: first {settings.ANALYSIS_MAX_SECONDS:.0f}s @ {settings.ANALYSIS_SAMPLE_RATE} Hz")
logger.info(f"  - CORS Origins Allowed: {settings.ALLOWED_ORIGINS}")
