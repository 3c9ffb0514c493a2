# File: keyshift/utils/request_tokens.py
import logging
import threading
import time
from typing import Callable, Dict, Optional, Tuple

logger = logging.getLogger(__name__)


class RequestTokens:
    """
    Tracks the newest prepare token seen per client, so a prepare can tell
    at registration time whether a newer one from the same client started.

    Clients idle for longer than the cache retention window are dropped by
    ``prune``, which the cache janitor calls on every sweep.
    """

    def __init__(self, clock: Callable[[], float] = time.time):
        self._clock = clock
        self._lock = threading.Lock()
        # client_id -> (newest token, last seen)
        self._latest: Dict[str, Tuple[int, float]] = {}

    def observe(self, client_id: Optional[str], token: Optional[int]) -> None:
        if client_id is None or token is None:
            return
        now = self._clock()
        with self._lock:
            latest, _ = self._latest.get(client_id, (-1, now))
            self._latest[client_id] = (max(token, latest), now)

    def is_current(self, client_id: Optional[str], token: Optional[int]) -> bool:
        """Untokened requests are always current."""
        if client_id is None or token is None:
            return True
        with self._lock:
            latest, _ = self._latest.get(client_id, (-1, 0.0))
            return token >= latest

    def prune(self, now: Optional[float] = None, max_age: float = 3600.0) -> int:
        """Forget clients not seen for more than ``max_age`` seconds. Returns how many were dropped."""
        if now is None:
            now = self._clock()
        with self._lock:
            stale = [cid for cid, (_, seen) in self._latest.items() if now - seen > max_age]
            for client_id in stale:
                del self._latest[client_id]
        if stale:
            logger.debug(f"Dropped request tokens of {len(stale)} idle client(s)")
        return len(stale)

    def __len__(self) -> int:
        with self._lock:
            return len(self._latest)
