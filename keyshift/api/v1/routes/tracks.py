# File: keyshift/api/v1/routes/tracks.py
"""Track metadata endpoint."""
from fastapi import APIRouter, Depends

from ....config import Settings
from ....exceptions import TrackNotFound
from ....schemas import ErrorResponse, KeyResponse, TrackResponse
from ....utils.track_registry import TrackRegistry
from ..dependencies import registry_dep, settings_dep

router = APIRouter()


@router.get("/tracks/{track_id}", response_model=TrackResponse, responses={404: {"model": ErrorResponse}})
async def get_track(
    track_id: str,
    registry: TrackRegistry = Depends(registry_dep),
    settings: Settings = Depends(settings_dep),
) -> TrackResponse:
    """Metadata of a prepared track. Does not extend its lifetime."""
    entry = registry.lookup(track_id)
    if entry is None:
        raise TrackNotFound()
    return TrackResponse(
        track_id=track_id,
        duration=entry.duration,
        key=KeyResponse.from_estimate(entry.key),
        created_at=entry.created_at,
        expires_at=entry.created_at + settings.TRACK_TTL_SECONDS,
    )
