# File: keyshift/schemas/tracks.py
"""Domain models for prepared tracks and their key estimates."""
from pathlib import Path
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field

from .enums import KeyConfidence, KeyMode

# Musical key names in chromatic order starting from C
KEY_NAMES = ['C', 'C#', 'D', 'D#', 'E', 'F', 'F#', 'G', 'G#', 'A', 'A#', 'B']


class KeyEstimate(BaseModel):
    """Estimated tonic and mode of a track."""
    model_config = ConfigDict(frozen=True)

    tonic_index: int = Field(..., ge=0, le=11, description="Pitch class of the tonic, 0 = C")
    mode: KeyMode
    confidence: KeyConfidence
    score: float = Field(..., description="Cosine similarity of the best key template, in [-1, 1]")

    @property
    def tonic(self) -> str:
        return KEY_NAMES[self.tonic_index]

    @property
    def name(self) -> str:
        """Short key label, e.g. "C", "Am", "G#m"."""
        return f"{self.tonic}{'m' if self.mode is KeyMode.MINOR else ''}"


class TrackEntry(BaseModel):
    """A prepared track owned by the registry. Immutable once registered."""
    model_config = ConfigDict(frozen=True)

    file_path: Path
    duration: float = Field(0.0, ge=0.0, description="Seconds; 0 means unknown")
    created_at: float = Field(0.0, description="Registration timestamp (epoch seconds)")
    key: Optional[KeyEstimate] = None
