"""
File responses with HTTP Range support
"""
import os
import re
from typing import Optional, Tuple, Iterator, Dict
from fastapi import Response
from fastapi.responses import StreamingResponse, RedirectResponse

from core.config import settings
from services.storage import storage_service, StorageError

CHUNK_SIZE = 1024 * 1024

MIME_TYPES = {
    ".mp4": "video/mp4",
    ".m4v": "video/mp4",
    ".webm": "video/webm",
    ".mov": "video/quicktime",
    ".zip": "application/zip",
}


class RangeNotSatisfiable(Exception):
    pass


def guess_media_type(path: str) -> str:
    return MIME_TYPES.get(os.path.splitext(path)[1].lower(), "application/octet-stream")


def safe_filename(name: str) -> str:
    """Header-safe download name"""
    cleaned = re.sub(r'[^\w\s.-]', '', name).strip()
    return re.sub(r'\s+', '_', cleaned) or "download"


def parse_range_header(range_header: Optional[str], file_size: int) -> Optional[Tuple[int, int]]:
    """
    Parse a single "bytes=start-end" range

    Returns:
        (start, end) inclusive, or None when no range was requested

    Raises:
        RangeNotSatisfiable: On malformed, multi-part or out-of-bounds ranges
    """
    if not range_header:
        return None

    units, _, byte_range = range_header.partition("=")
    if units.strip().lower() != "bytes" or "," in byte_range:
        raise RangeNotSatisfiable(range_header)

    start_str, sep, end_str = byte_range.strip().partition("-")
    if not sep:
        raise RangeNotSatisfiable(range_header)

    try:
        if start_str == "":
            # Suffix range: the last N bytes
            length = int(end_str)
            if length <= 0:
                raise RangeNotSatisfiable(range_header)
            start = max(0, file_size - length)
            end = file_size - 1
        else:
            start = int(start_str)
            end = int(end_str) if end_str else file_size - 1
    except ValueError:
        raise RangeNotSatisfiable(range_header)

    end = min(end, file_size - 1)
    if start < 0 or start >= file_size or start > end:
        raise RangeNotSatisfiable(range_header)

    return start, end


def iter_file(path: str, start: int, end: int, chunk_size: int = CHUNK_SIZE) -> Iterator[bytes]:
    with open(path, "rb") as f:
        f.seek(start)
        remaining = end - start + 1
        while remaining > 0:
            chunk = f.read(min(chunk_size, remaining))
            if not chunk:
                break
            remaining -= len(chunk)
            yield chunk


def build_file_response(
    path: str,
    range_header: Optional[str],
    filename: str,
    disposition: str = "attachment",
    extra_headers: Optional[Dict[str, str]] = None
) -> Response:
    """
    Stream a local file, honoring a Range header (206 + Content-Range, or 416)
    """
    file_size = os.path.getsize(path)
    headers = {
        "Accept-Ranges": "bytes",
        "Content-Disposition": f'{disposition}; filename="{safe_filename(filename)}"',
    }
    if extra_headers:
        headers.update(extra_headers)

    try:
        byte_range = parse_range_header(range_header, file_size)
    except RangeNotSatisfiable:
        return Response(status_code=416, headers={"Content-Range": f"bytes */{file_size}"})

    if byte_range is None:
        start, end, status_code = 0, file_size - 1, 200
    else:
        start, end = byte_range
        status_code = 206
        headers["Content-Range"] = f"bytes {start}-{end}/{file_size}"

    headers["Content-Length"] = str(max(0, end - start + 1))

    return StreamingResponse(
        iter_file(path, start, end),
        status_code=status_code,
        media_type=guess_media_type(path),
        headers=headers,
    )


def video_file_response(
    video_key: Optional[str],
    range_header: Optional[str],
    filename: str,
    disposition: str = "attachment",
    extra_headers: Optional[Dict[str, str]] = None
) -> Response:
    """
    Serve a stored video: local storage streams the file, remote backends
    redirect to a short-lived presigned URL

    Raises:
        StorageError: If the object is missing or the URL cannot be issued
    """
    if not video_key:
        raise StorageError("Video file is not available")

    if not storage_service.is_local:
        url = storage_service.get_presigned_url(
            video_key, settings.MINIO_BUCKET_VIDEOS, expires_in=settings.STREAM_TOKEN_TTL_SECONDS
        )
        return RedirectResponse(url, status_code=307)

    path, _ = storage_service.get_local_path(video_key, settings.MINIO_BUCKET_VIDEOS)
    return build_file_response(path, range_header, filename, disposition, extra_headers)
