# File: keyshift/api/v1/routes/prepare.py
"""Track preparation endpoints."""
import logging
from typing import Optional

from fastapi import APIRouter, Depends, Query

from ....processing import TrackPipeline
from ....schemas import ErrorResponse, KeyResponse, PrepareRequest, PrepareResponse
from ..dependencies import pipeline_dep

logger = logging.getLogger(__name__)
router = APIRouter()

PREPARE_ERRORS = {
    400: {"model": ErrorResponse, "description": "URL rejected by the allow-list"},
    409: {"model": ErrorResponse, "description": "Superseded by a newer prepare from the same client"},
    502: {"model": ErrorResponse, "description": "Audio download failed"},
}


async def _prepare(pipeline: TrackPipeline, request: PrepareRequest) -> PrepareResponse:
    logger.info(
        f"Prepare • url='{request.url[:80]}' client={request.client_id or '-'} token={request.request_token}"
    )
    prepared = await pipeline.prepare(
        request.url,
        client_id=request.client_id,
        request_token=request.request_token,
    )
    return PrepareResponse(
        track_id=prepared.track_id,
        duration=prepared.entry.duration,
        key=KeyResponse.from_estimate(prepared.entry.key),
    )


@router.post("/prepare", response_model=PrepareResponse, responses=PREPARE_ERRORS)
async def prepare_track(
    request: PrepareRequest,
    pipeline: TrackPipeline = Depends(pipeline_dep),
) -> PrepareResponse:
    """
    Download a track once, cache it, and estimate its key.

    - **url**: YouTube URL
    - **client_id** / **request_token**: optional; a newer token from the same
      client makes older in-flight prepares fail with 409 instead of registering
    """
    return await _prepare(pipeline, request)


@router.get("/prepare", response_model=PrepareResponse, responses=PREPARE_ERRORS)
async def prepare_track_query(
    url: str = Query(..., min_length=1, description="YouTube URL"),
    client_id: Optional[str] = Query(None, max_length=128),
    request_token: Optional[int] = Query(None, ge=0),
    pipeline: TrackPipeline = Depends(pipeline_dep),
) -> PrepareResponse:
    """Query-string variant of POST /prepare."""
    return await _prepare(pipeline, PrepareRequest(url=url, client_id=client_id, request_token=request_token))
