"""Per-request bookkeeping for the share server.

``ShareRequestMiddleware`` does three things for every request:

- accepts a well-formed ``X-Request-ID`` (or mints one), binds it for log
  correlation and echoes it on the response
- records the HTTP Prometheus series
- writes one ``request_completed`` log line

Share tokens are capabilities, so they are replaced by a placeholder in both
metric labels and log lines. Streaming bodies are sent after ``call_next``
returns; durations measure time to response headers, not transfer time.
"""

from __future__ import annotations

import re
import time
import uuid

from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import Response

from .logging import get_logger, request_id_ctx
from .metrics import (
    HTTP_REQUEST_DURATION_SECONDS,
    HTTP_REQUESTS_IN_FLIGHT,
    HTTP_REQUESTS_TOTAL,
)

logger = get_logger(__name__)

_VALID_REQUEST_ID = re.compile(r"^[a-zA-Z0-9\-]{8,128}$")
_TOKEN_SEGMENT = re.compile(r"^/(file|raw)/[^/]+")


def redact_path(path: str) -> str:
    """``/file/3f2a...`` -> ``/file/{token}``; other paths unchanged."""
    return _TOKEN_SEGMENT.sub(r"/\1/{token}", path)


def _request_id(request: Request) -> str:
    incoming = request.headers.get("x-request-id", "")
    if incoming and _VALID_REQUEST_ID.match(incoming):
        return incoming
    return uuid.uuid4().hex


class ShareRequestMiddleware(BaseHTTPMiddleware):
    """Request id, HTTP metrics and access log for the share server."""

    async def dispatch(
        self, request: Request, call_next: RequestResponseEndpoint,
    ) -> Response:
        rid = _request_id(request)
        path = redact_path(request.url.path)
        method = request.method

        ctx_token = request_id_ctx.set(rid)
        HTTP_REQUESTS_IN_FLIGHT.inc()
        start = time.perf_counter()
        status = "500"
        try:
            response = await call_next(request)
            status = str(response.status_code)
        finally:
            elapsed = time.perf_counter() - start
            HTTP_REQUESTS_IN_FLIGHT.dec()
            HTTP_REQUEST_DURATION_SECONDS.labels(method=method, path=path).observe(elapsed)
            HTTP_REQUESTS_TOTAL.labels(method=method, path=path, status=status).inc()
            logger.info(
                "request_completed",
                method=method,
                path=path,
                status=int(status),
                range=request.headers.get("range"),
                client=request.client.host if request.client else None,
                duration_ms=round(elapsed * 1000, 2),
            )
            request_id_ctx.reset(ctx_token)

        response.headers["X-Request-ID"] = rid
        return response
