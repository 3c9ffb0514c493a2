# File: keyshift/core/streaming.py
"""Serves cached track files with HTTP byte-range support for seeking."""
import logging
import os
import re
from pathlib import Path
from typing import BinaryIO, Iterator, Optional, Tuple

from starlette.responses import StreamingResponse

from ..exceptions import RangeNotSatisfiable, TrackNotFound
from ..utils.track_registry import TrackRegistry

logger = logging.getLogger(__name__)

RANGE_HEADER_REGEX = re.compile(r"^bytes=(\d+)-(\d*)$")


def parse_range_header(range_header: str, file_size: int) -> Tuple[int, int]:
    """
    Parse a single "bytes=start-end" range (end optional) against a file size.

    An end beyond the file is clamped to the last byte.

    Raises:
        RangeNotSatisfiable: unparsable header, start > end, or start past EOF.
    """
    match = RANGE_HEADER_REGEX.match(range_header.strip())
    if not match:
        raise RangeNotSatisfiable(file_size, f"Malformed Range header: '{range_header[:50]}'")

    start = int(match.group(1))
    end = int(match.group(2)) if match.group(2) else file_size - 1
    if start > end:
        raise RangeNotSatisfiable(file_size, f"Range start {start} is after end {end}")
    if start >= file_size:
        raise RangeNotSatisfiable(file_size, f"Range start {start} is beyond file size {file_size}")
    return start, min(end, file_size - 1)


def iter_file_range(file_obj: BinaryIO, start: int, length: int, chunk_size: int = 64 * 1024) -> Iterator[bytes]:
    """
    Yields ``length`` bytes of an already open file from ``start`` and closes
    it when done. The handle stays readable if the path is unlinked meanwhile.
    """
    with file_obj:
        file_obj.seek(start)
        remaining = length
        while remaining > 0:
            chunk = file_obj.read(min(chunk_size, remaining))
            if not chunk:
                break
            remaining -= len(chunk)
            yield chunk


def stream_track(
    registry: TrackRegistry,
    track_id: str,
    range_header: Optional[str],
    media_type: str,
    chunk_size: int = 64 * 1024,
) -> StreamingResponse:
    """
    Build the response for a stream request.

    Raises:
        TrackNotFound: unknown/expired id, or the backing file is gone.
        RangeNotSatisfiable: see parse_range_header.
    """
    entry = registry.lookup(track_id)
    if entry is None:
        raise TrackNotFound()

    # Open before any header is sent; the handle outlives a concurrent unlink
    file_path = Path(entry.file_path)
    try:
        file_obj = open(file_path, "rb")
    except FileNotFoundError:
        logger.warning(f"Track {track_id}: Backing file missing: {file_path}")
        raise TrackNotFound()
    file_size = os.fstat(file_obj.fileno()).st_size

    if not range_header:
        logger.debug(f"Streaming full track {track_id} ({file_size} bytes)")
        return StreamingResponse(
            iter_file_range(file_obj, 0, file_size, chunk_size),
            status_code=200,
            media_type=media_type,
            headers={"Content-Length": str(file_size), "Accept-Ranges": "bytes"},
        )

    try:
        start, end = parse_range_header(range_header, file_size)
    except RangeNotSatisfiable:
        file_obj.close()
        raise
    length = end - start + 1
    logger.debug(f"Streaming track {track_id}: bytes {start}-{end}/{file_size}")
    return StreamingResponse(
        iter_file_range(file_obj, start, length, chunk_size),
        status_code=206,
        media_type=media_type,
        headers={
            "Content-Range": f"bytes {start}-{end}/{file_size}",
            "Accept-Ranges": "bytes",
            "Content-Length": str(length),
        },
    )
