# File: keyshift/utils/file_system.py
import logging
from pathlib import Path

logger = logging.getLogger(__name__)


def track_file_path(cache_dir: Path, track_id: str, audio_format: str) -> Path:
    """The fixed on-disk location of a track's audio: <cache_dir>/<track_id>.<ext>"""
    return cache_dir / f"{track_id}.{audio_format}"


def delete_file(file_path: Path) -> bool:
    """
    Best-effort unlink. A file that is already gone is not an error.
    Returns True if a file was removed.
    """
    try:
        file_path.unlink()
        return True
    except FileNotFoundError:
        return False
    except OSError as e:
        logger.warning(f"Could not delete file {file_path}: {e}")
        return False


def cleanup_track_files(track_id: str, cache_dir: Path) -> int:
    """
    Removes every file in the cache directory belonging to a track id,
    including partial downloads and intermediates left by yt-dlp
    (e.g. '<id>.webm.part', '<id>.webm').
    """
    if not track_id or not cache_dir.is_dir():
        return 0
    count_deleted = 0
    for file_path in cache_dir.glob(f"{track_id}.*"):
        if file_path.is_file() and delete_file(file_path):
            count_deleted += 1
    if count_deleted:
        logger.info(f"Cleanup for track {track_id}: deleted {count_deleted} file(s) from {cache_dir}")
    return count_deleted
