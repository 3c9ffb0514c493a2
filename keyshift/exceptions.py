# File: keyshift/exceptions.py
"""Errors that cross the core's boundary, each mapped to an HTTP status."""
from typing import Optional


class KeyshiftError(Exception):
    """Base class for caller-visible failures."""
    status_code: int = 500
    default_detail: str = "An internal server error occurred."

    def __init__(self, detail: Optional[str] = None):
        self.detail = detail or self.default_detail
        super().__init__(self.detail)


class InvalidInput(KeyshiftError):
    """The submitted URL failed the scheme/host allow-list. No retry implied."""
    status_code = 400
    default_detail = "Invalid or missing YouTube URL."


class AcquisitionFailed(KeyshiftError):
    """The download stage failed; the whole prepare is safe to retry."""
    status_code = 502
    default_detail = "Failed to download audio."


class TrackNotFound(KeyshiftError):
    """Unknown or expired track id. The client should prepare again."""
    status_code = 404
    default_detail = "Unknown or expired trackId."


class RangeNotSatisfiable(KeyshiftError):
    status_code = 416
    default_detail = "Requested range not satisfiable."

    def __init__(self, file_size: int, detail: Optional[str] = None):
        self.file_size = file_size
        super().__init__(detail)


class PrepareSuperseded(KeyshiftError):
    """A newer prepare from the same client started before this one registered."""
    status_code = 409
    default_detail = "Prepare request was superseded by a newer request."


class KeyAnalysisError(ValueError):
    """Raised by the analyzer for malformed input; absorbed by the pipeline."""
