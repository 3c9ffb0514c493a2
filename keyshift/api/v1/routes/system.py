# File: keyshift/api/v1/routes/system.py
"""Health and version endpoints, mounted at the root."""
from fastapi import APIRouter, Depends
from yt_dlp.version import __version__ as yt_dlp_version

from .... import __version__
from ....schemas import HealthResponse, VersionResponse
from ....utils.track_registry import TrackRegistry
from ..dependencies import registry_dep

router = APIRouter()


@router.get("/health", response_model=HealthResponse)
async def health(registry: TrackRegistry = Depends(registry_dep)) -> HealthResponse:
    return HealthResponse(status="ok", tracks=len(registry))


@router.get("/version", response_model=VersionResponse)
async def version() -> VersionResponse:
    return VersionResponse(version=__version__, yt_dlp=yt_dlp_version)
