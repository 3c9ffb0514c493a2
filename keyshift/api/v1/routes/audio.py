# File: keyshift/api/v1/routes/audio.py
"""Cached audio streaming endpoint."""
from typing import Optional

from fastapi import APIRouter, Depends, Header
from starlette.responses import StreamingResponse

from ....config import Settings
from ....core.streaming import stream_track
from ....schemas import ErrorResponse
from ....utils.track_registry import TrackRegistry
from ..dependencies import registry_dep, settings_dep

router = APIRouter()


@router.get(
    "/audio/{track_id}",
    response_class=StreamingResponse,
    responses={404: {"model": ErrorResponse}, 416: {"model": ErrorResponse}},
)
async def get_audio(
    track_id: str,
    range_header: Optional[str] = Header(None, alias="Range"),
    registry: TrackRegistry = Depends(registry_dep),
    settings: Settings = Depends(settings_dep),
) -> StreamingResponse:
    """
    Stream a prepared track. Honors a single "bytes=start-end" Range header
    with 206 Partial Content so players can seek.
    """
    return stream_track(
        registry,
        track_id,
        range_header,
        media_type=settings.AUDIO_MEDIA_TYPE,
        chunk_size=settings.STREAM_CHUNK_SIZE,
    )
