# File: keyshift/utils/track_registry.py
"""In-memory registry of prepared tracks with age-based eviction."""
import logging
import secrets
import threading
import time
from pathlib import Path
from typing import Callable, Dict, List, Optional, Set

from ..schemas.tracks import TrackEntry
from .file_system import delete_file

logger = logging.getLogger(__name__)

Clock = Callable[[], float]


def new_track_id() -> str:
    """128 random bits, hex encoded."""
    return secrets.token_hex(16)


class TrackRegistry:
    """
    Maps track ids to TrackEntry.

    Insert, lookup and eviction are each atomic under one coarse lock.
    Entries are immutable; lookups never extend their lifetime.
    """

    def __init__(self, clock: Clock = time.time):
        self._clock = clock
        self._lock = threading.Lock()
        self._tracks: Dict[str, TrackEntry] = {}
        self._reserved: Set[str] = set()
        self._last_created_at = float("-inf")

    def reserve_id(self) -> str:
        """
        Issue a fresh id ahead of registration, so the backing file path can
        be derived from it. The id stays reserved until registered or released.
        """
        with self._lock:
            while True:
                track_id = new_track_id()
                if track_id not in self._tracks and track_id not in self._reserved:
                    self._reserved.add(track_id)
                    return track_id

    def release_id(self, track_id: str) -> None:
        """Drop a reservation that will never be registered (failed prepare)."""
        with self._lock:
            self._reserved.discard(track_id)

    def register(self, entry: TrackEntry, track_id: Optional[str] = None) -> str:
        """
        Insert an entry and return its id. ``created_at`` is stamped here,
        never earlier than the previous insertion's.
        """
        with self._lock:
            if track_id is None:
                track_id = new_track_id()
                while track_id in self._tracks or track_id in self._reserved:
                    track_id = new_track_id()
            elif track_id in self._tracks:
                raise ValueError(f"Track id {track_id} is already registered")
            self._reserved.discard(track_id)

            created_at = max(self._clock(), self._last_created_at)
            self._last_created_at = created_at
            self._tracks[track_id] = entry.model_copy(update={"created_at": created_at})
        logger.info(f"Registered track {track_id} (duration={entry.duration:.1f}s, key={entry.key.name if entry.key else None})")
        return track_id

    def lookup(self, track_id: str) -> Optional[TrackEntry]:
        with self._lock:
            return self._tracks.get(track_id)

    def evict_expired(self, now: Optional[float] = None, max_age: float = 3600.0) -> List[str]:
        """
        Remove every entry with ``now - created_at > max_age`` and delete its
        backing file. File deletion is best-effort; a missing file is fine.

        Returns:
            The evicted track ids.
        """
        if now is None:
            now = self._clock()

        with self._lock:
            expired = [tid for tid, entry in self._tracks.items() if now - entry.created_at > max_age]
            evicted = {tid: self._tracks.pop(tid) for tid in expired}

        for track_id, entry in evicted.items():
            logger.info(f"Cleaning up track {track_id} (age {now - entry.created_at:.0f}s)")
            delete_file(Path(entry.file_path))
        return list(evicted)

    def track_ids(self) -> List[str]:
        with self._lock:
            return list(self._tracks)

    def __len__(self) -> int:
        with self._lock:
            return len(self._tracks)

    def __contains__(self, track_id: object) -> bool:
        with self._lock:
            return track_id in self._tracks
