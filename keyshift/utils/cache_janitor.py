# File: keyshift/utils/cache_janitor.py
"""Background sweep that evicts expired tracks on a fixed interval."""
import asyncio
import logging
import time
from typing import List, Optional

from .request_tokens import RequestTokens
from .track_registry import Clock, TrackRegistry

logger = logging.getLogger(__name__)


class CacheJanitor:
    def __init__(
        self,
        registry: TrackRegistry,
        interval: float,
        max_age: float,
        clock: Clock = time.time,
        tokens: Optional[RequestTokens] = None,
    ):
        self.registry = registry
        self.interval = interval
        self.max_age = max_age
        self._clock = clock
        self.tokens = tokens
        self._task: Optional[asyncio.Task] = None

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def sweep(self) -> List[str]:
        now = self._clock()
        evicted = self.registry.evict_expired(now, self.max_age)
        if self.tokens is not None:
            self.tokens.prune(now, self.max_age)
        if evicted:
            logger.info(f"[CACHE] Evicted {len(evicted)} expired track(s); {len(self.registry)} remaining.")
        return evicted

    async def _run(self) -> None:
        while True:
            await asyncio.sleep(self.interval)
            try:
                await asyncio.to_thread(self.sweep)
            except Exception as e:
                logger.error(f"[CACHE] Sweep failed: {e}", exc_info=True)

    def start(self) -> None:
        if self.running:
            return
        logger.info(f"[CACHE] Janitor started: sweeping every {self.interval:.0f}s, max age {self.max_age:.0f}s")
        self._task = asyncio.create_task(self._run(), name="keyshift-cache-janitor")

    async def stop(self) -> None:
        task, self._task = self._task, None
        if task is None:
            return
        task.cancel()
        try:
            await task
        except asyncio.CancelledError:
            pass
        logger.info("[CACHE] Janitor stopped.")
