# File: keyshift/processing.py
"""
The prepare pipeline: URL in, registered TrackEntry out.

Stages run strictly in order. Only ACQUIRE is fatal; every other stage
degrades its field to a default (duration 0, key None) and the track is
still registered.
"""
import asyncio
import logging
import time
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

import numpy as np

from .config import Settings
from .core.audio_analyzer import estimate_key
from .core.audio_extractor import decode_for_analysis, probe_duration
from .core.downloader import download_audio, lookup_duration, validate_source_url
from .exceptions import AcquisitionFailed, KeyshiftError, PrepareSuperseded
from .schemas.enums import PrepareStage
from .schemas.tracks import KeyEstimate, TrackEntry
from .utils.file_system import cleanup_track_files, track_file_path
from .utils.process_runner import ProcessRunner
from .utils.request_tokens import RequestTokens
from .utils.track_registry import TrackRegistry

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class PreparedTrack:
    track_id: str
    entry: TrackEntry


@dataclass
class _PipelineState:
    """Typed intermediate results, filled in stage by stage."""
    track_id: str
    url: str
    target: Path
    metadata_duration: float = 0.0
    audio_path: Optional[Path] = None
    duration: float = 0.0
    samples: Optional[np.ndarray] = None
    key: Optional[KeyEstimate] = None
    entry: Optional[TrackEntry] = None


class TrackPipeline:
    """
    Turns a source URL into a cached local audio file plus metadata.

    Independent prepares share nothing but the registry (and the per-client
    token table), so any number of them can run concurrently.
    """

    def __init__(
        self,
        registry: TrackRegistry,
        runner: ProcessRunner,
        settings: Settings,
        tokens: Optional[RequestTokens] = None,
    ):
        self.registry = registry
        self.runner = runner
        self.settings = settings
        self.tokens = tokens if tokens is not None else RequestTokens()

    async def prepare(
        self,
        url: str,
        client_id: Optional[str] = None,
        request_token: Optional[int] = None,
    ) -> PreparedTrack:
        """
        Run all stages for ``url``.

        Raises:
            InvalidInput: URL failed the allow-list; nothing is spawned.
            AcquisitionFailed: the download failed; no entry is registered.
            PrepareSuperseded: a newer prepare from the same client started.
        """
        url = validate_source_url(url, self.settings.ALLOWED_HOSTS, self.settings.ALLOWED_SCHEMES)
        self.tokens.observe(client_id, request_token)

        track_id = self.registry.reserve_id()
        state = _PipelineState(
            track_id=track_id,
            url=url,
            target=track_file_path(self.settings.CACHE_DIR, track_id, self.settings.AUDIO_FORMAT),
        )
        logger.info(f"Track {track_id}: Preparing track for: {url[:100]}")
        start_time = time.monotonic()
        registered = False

        try:
            await self._run_step(state, PrepareStage.METADATA, self._lookup_metadata)
            await self._run_step(state, PrepareStage.ACQUIRE, self._acquire, fatal=True)
            await self._run_step(state, PrepareStage.PROBE, self._probe)
            await self._run_step(state, PrepareStage.DECODE, self._decode)
            await self._run_step(state, PrepareStage.ANALYZE, self._analyze)
            await self._run_step(
                state, PrepareStage.REGISTER, lambda s: self._register(s, client_id, request_token), fatal=True
            )
            registered = True
        finally:
            if not registered:
                self.registry.release_id(track_id)
                await asyncio.to_thread(cleanup_track_files, track_id, self.settings.CACHE_DIR)

        logger.info(
            f"Track {track_id}: Prepared in {time.monotonic() - start_time:.2f}s "
            f"(duration={state.duration:.1f}s, key={state.key.name if state.key else None})"
        )
        return PreparedTrack(track_id=track_id, entry=state.entry)

    async def _run_step(self, state: _PipelineState, stage: PrepareStage, step, fatal: bool = False) -> None:
        step_start_time = time.monotonic()
        logger.debug(f"Track {state.track_id}: Starting stage '{stage.value}'")
        try:
            await step(state)
        except KeyshiftError:
            elapsed = time.monotonic() - step_start_time
            logger.error(f"Track {state.track_id}: Stage '{stage.value}' failed after {elapsed:.2f}s.")
            raise
        except Exception as e:
            elapsed = time.monotonic() - step_start_time
            logger.error(
                f"Track {state.track_id}: Stage '{stage.value}' failed after {elapsed:.2f}s: {e}", exc_info=True
            )
            if not fatal:
                return
            if stage is PrepareStage.ACQUIRE:
                raise AcquisitionFailed() from e
            raise
        elapsed = time.monotonic() - step_start_time
        logger.info(f"Track {state.track_id}: Stage '{stage.value}' completed in {elapsed:.2f}s.")

    # --- Stages ---

    async def _lookup_metadata(self, state: _PipelineState) -> None:
        state.metadata_duration = await lookup_duration(state.track_id, state.url, self.runner, self.settings)
        state.duration = state.metadata_duration

    async def _acquire(self, state: _PipelineState) -> None:
        state.audio_path = await download_audio(state.track_id, state.url, state.target, self.runner, self.settings)

    async def _probe(self, state: _PipelineState) -> None:
        probed = await probe_duration(state.track_id, state.audio_path, self.runner, self.settings)
        if probed > 0:
            state.duration = probed
        else:
            logger.info(f"Track {state.track_id}: Falling back to metadata duration {state.metadata_duration:.1f}s")
            state.duration = state.metadata_duration

    async def _decode(self, state: _PipelineState) -> None:
        state.samples = await decode_for_analysis(state.track_id, state.audio_path, self.runner, self.settings)

    async def _analyze(self, state: _PipelineState) -> None:
        if state.samples is None:
            logger.info(f"Track {state.track_id}: No decoded samples. Skipping key detection.")
            return
        try:
            state.key = await asyncio.to_thread(estimate_key, state.samples, self.settings.ANALYSIS_SAMPLE_RATE)
        except Exception as e:
            logger.error(f"Track {state.track_id}: Key detection failed: {e}", exc_info=True)
            state.key = None
        finally:
            state.samples = None

    async def _register(self, state: _PipelineState, client_id: Optional[str], request_token: Optional[int]) -> None:
        if not self.tokens.is_current(client_id, request_token):
            logger.info(
                f"Track {state.track_id}: Discarding stale result for client '{client_id}' (token {request_token})."
            )
            raise PrepareSuperseded()
        entry = TrackEntry(file_path=state.target, duration=state.duration, key=state.key)
        self.registry.register(entry, track_id=state.track_id)
        state.entry = self.registry.lookup(state.track_id) or entry
