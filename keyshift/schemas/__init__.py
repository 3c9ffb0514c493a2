# Pydantic schemas for request/response validation and domain models
from .requests import PrepareRequest
from .responses import (
    ErrorResponse,
    HealthResponse,
    KeyResponse,
    PrepareResponse,
    TrackResponse,
    VersionResponse,
)
from .enums import KeyConfidence, KeyMode, PrepareStage
from .tracks import KEY_NAMES, KeyEstimate, TrackEntry

__all__ = [
    "PrepareRequest",
    "ErrorResponse",
    "HealthResponse",
    "KeyResponse",
    "PrepareResponse",
    "TrackResponse",
    "VersionResponse",
    "KeyConfidence",
    "KeyMode",
    "PrepareStage",
    "KEY_NAMES",
    "KeyEstimate",
    "TrackEntry",
]
