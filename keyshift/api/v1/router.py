# File: keyshift/api/v1/router.py
"""Main API v1 router that combines all route modules."""
from fastapi import APIRouter

from .routes import audio, prepare, tracks

router = APIRouter()

# Include all route modules
router.include_router(prepare.router, tags=["Prepare"])
router.include_router(tracks.router, tags=["Tracks"])
router.include_router(audio.router, tags=["Audio"])
