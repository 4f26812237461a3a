"""Streaming responder: serve a byte window of a file without buffering it.

The content length is taken from a fresh ``stat()`` on every request since
the file may have changed after it was shared. Bodies are sync generators;
Starlette iterates them in its thread pool, so each client gets its own
read-only file handle.
"""
from __future__ import annotations

import os
from pathlib import Path
from typing import Iterator
from urllib.parse import quote

from starlette.responses import Response, StreamingResponse

from ....observability import get_logger
from ....observability.metrics import RANGE_REQUESTS_TOTAL, STREAM_BYTES_TOTAL
from ...error_codes import RangeNotSatisfiableError
from ...range_resolver import ByteRange, resolve_range, unsatisfiable_content_range

logger = get_logger(__name__)

DEFAULT_CHUNK_SIZE = 64 * 1024


def iter_file_range(
    path: Path,
    start: int,
    length: int,
    chunk_size: int = DEFAULT_CHUNK_SIZE,
) -> Iterator[bytes]:
    """Yield ``length`` bytes of ``path`` from ``start`` in chunks.

    Stops early (and logs) if the file disappears, becomes unreadable or
    shrinks while streaming; the client sees a short body and the handle is
    always released.
    """
    remaining = length
    try:
        with open(path, 'rb') as f:
            f.seek(start)
            while remaining > 0:
                chunk = f.read(min(chunk_size, remaining))
                if not chunk:
                    logger.warning(
                        'stream_truncated',
                        path=str(path),
                        missing_bytes=remaining,
                    )
                    return
                remaining -= len(chunk)
                STREAM_BYTES_TOTAL.inc(len(chunk))
                yield chunk
    except OSError as e:
        logger.warning(
            'stream_aborted',
            path=str(path),
            sent_bytes=length - remaining,
            error=str(e),
        )


def content_disposition(filename: str, attachment: bool) -> str:
    kind = 'attachment' if attachment else 'inline'
    ascii_name = filename.encode('ascii', 'replace').decode('ascii').replace('"', '')
    return f"{kind}; filename=\"{ascii_name}\"; filename*=UTF-8''{quote(filename)}"


def stream_file(
    path: Path,
    media_type: str,
    range_header: str | None,
    *,
    attachment: bool = False,
    strategy: str | None = None,
    chunk_size: int = DEFAULT_CHUNK_SIZE,
) -> Response:
    """Build a 200, 206 or 416 response for ``path``.

    Raises:
        FileNotFoundError: If ``path`` vanished before streaming started
    """
    size = os.stat(path).st_size
    headers = {
        'Accept-Ranges': 'bytes',
        'Content-Disposition': content_disposition(path.name, attachment),
        'Cache-Control': 'no-store',
    }
    if strategy:
        headers['X-Render-Strategy'] = strategy

    try:
        byte_range = resolve_range(range_header, size)
    except RangeNotSatisfiableError as e:
        RANGE_REQUESTS_TOTAL.labels(outcome='unsatisfiable').inc()
        logger.info('range_not_satisfiable', path=str(path), range=range_header, length=size)
        return Response(
            content=e.message,
            status_code=416,
            media_type='text/plain',
            headers={
                'Accept-Ranges': 'bytes',
                'Content-Range': unsatisfiable_content_range(size),
            },
        )

    if byte_range is None:
        RANGE_REQUESTS_TOTAL.labels(outcome='full').inc()
        byte_range = ByteRange(0, size - 1) if size else None
        status_code = 200
    else:
        RANGE_REQUESTS_TOTAL.labels(outcome='partial').inc()
        headers['Content-Range'] = byte_range.content_range(size)
        status_code = 206

    if byte_range is None:
        headers['Content-Length'] = '0'
        return Response(content=b'', status_code=200, media_type=media_type, headers=headers)

    headers['Content-Length'] = str(byte_range.length)
    return StreamingResponse(
        iter_file_range(path, byte_range.start, byte_range.length, chunk_size),
        status_code=status_code,
        media_type=media_type,
        headers=headers,
    )
