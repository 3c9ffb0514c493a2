# File: keyshift/schemas/requests.py
"""Request schemas for API endpoints."""
from typing import Optional

from pydantic import BaseModel, Field, field_validator


class PrepareRequest(BaseModel):
    """Request schema for preparing a track."""
    url: str = Field(..., description="YouTube URL", min_length=1)
    client_id: Optional[str] = Field(
        None,
        max_length=128,
        description="Opaque caller context; prepares with a newer token from the same client supersede older ones"
    )
    request_token: Optional[int] = Field(
        None,
        ge=0,
        description="Monotonically increasing token issued by the caller per prepare"
    )

    @field_validator("url")
    @classmethod
    def strip_url(cls, url: str) -> str:
        return url.strip()

    class Config:
        json_schema_extra = {
            "example": {
                "url": "https://www.youtube.com/watch?v=dQw4w9WgXcQ",
                "client_id": "tab-3f9c",
                "request_token": 7
            }
        }
