# File: keyshift/schemas/responses.py
"""Response schemas for API endpoints."""
from typing import Optional

from pydantic import BaseModel, Field

from .enums import KeyConfidence, KeyMode
from .tracks import KeyEstimate


class KeyResponse(BaseModel):
    """Estimated musical key."""
    tonic_index: int = Field(..., ge=0, le=11, description="Pitch class of the tonic, 0 = C")
    tonic: str = Field(..., description="Tonic note name, e.g. 'C#'")
    mode: KeyMode
    confidence: KeyConfidence
    score: float = Field(..., description="Similarity of the best matching key template")
    name: str = Field(..., description="Short key label, e.g. 'Am', 'C', 'G#m'")

    @classmethod
    def from_estimate(cls, estimate: Optional[KeyEstimate]) -> Optional["KeyResponse"]:
        if estimate is None:
            return None
        return cls(
            tonic_index=estimate.tonic_index,
            tonic=estimate.tonic,
            mode=estimate.mode,
            confidence=estimate.confidence,
            score=estimate.score,
            name=estimate.name,
        )


class PrepareResponse(BaseModel):
    """Response for a prepared track."""
    track_id: str = Field(..., description="Opaque track handle used for streaming")
    duration: float = Field(..., ge=0.0, description="Duration in seconds, 0 if unknown")
    key: Optional[KeyResponse] = Field(None, description="Estimated key, null if detection failed")

    class Config:
        json_schema_extra = {
            "example": {
                "track_id": "9f86d081884c7d659a2feaa0c55ad015",
                "duration": 213.0,
                "key": {
                    "tonic_index": 8,
                    "tonic": "G#",
                    "mode": "major",
                    "confidence": "high",
                    "score": 0.81,
                    "name": "G#"
                }
            }
        }


class TrackResponse(PrepareResponse):
    """Metadata of a registered track."""
    created_at: float = Field(..., description="Registration time (epoch seconds)")
    expires_at: float = Field(..., description="Earliest time the track may be evicted (epoch seconds)")


class HealthResponse(BaseModel):
    """Health check response."""
    status: str = Field("ok", description="Service status")
    tracks: int = Field(..., ge=0, description="Number of cached tracks")


class VersionResponse(BaseModel):
    version: str = Field(..., description="Service version")
    yt_dlp: str = Field(..., description="Version of the installed yt-dlp package")


class ErrorResponse(BaseModel):
    """Standard error response."""
    detail: str = Field(..., description="Error message")
