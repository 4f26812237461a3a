"""Prometheus metrics for filepilot.

Metric naming follows Prometheus conventions. HTTP metrics are recorded by
``ShareRequestMiddleware``; the share, streaming and search counters are
incremented by the components that own those events.

Usage::

    from filepilot.observability.metrics import SHARES_REGISTERED_TOTAL

    SHARES_REGISTERED_TOTAL.inc()
"""

from __future__ import annotations

from prometheus_client import (
    REGISTRY,
    Counter,
    Gauge,
    Histogram,
    generate_latest,
    CONTENT_TYPE_LATEST,
)

# ---------------------------------------------------------------------------
# HTTP request metrics
# ---------------------------------------------------------------------------

HTTP_REQUESTS_TOTAL = Counter(
    "http_server_requests_total",
    "Total HTTP requests by method, path pattern, and status code.",
    labelnames=["method", "path", "status"],
    registry=REGISTRY,
)

HTTP_REQUEST_DURATION_SECONDS = Histogram(
    "http_server_request_duration_seconds",
    "HTTP request latency in seconds (time to response headers).",
    labelnames=["method", "path"],
    buckets=(0.005, 0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0),
    registry=REGISTRY,
)

HTTP_REQUESTS_IN_FLIGHT = Gauge(
    "http_server_requests_in_flight",
    "Number of HTTP requests currently being processed.",
    registry=REGISTRY,
)

# ---------------------------------------------------------------------------
# Sharing metrics
# ---------------------------------------------------------------------------

SHARES_REGISTERED_TOTAL = Counter(
    "filepilot_shares_registered_total",
    "Files registered for sharing since process start.",
    registry=REGISTRY,
)

RANGE_REQUESTS_TOTAL = Counter(
    "filepilot_range_requests_total",
    "Streamed responses by range outcome (full, partial, unsatisfiable).",
    labelnames=["outcome"],
    registry=REGISTRY,
)

STREAM_BYTES_TOTAL = Counter(
    "filepilot_stream_bytes_total",
    "Bytes written by the streaming responder.",
    registry=REGISTRY,
)

SHARE_NOTIFICATIONS_TOTAL = Counter(
    "filepilot_share_notifications_total",
    "Share notification webhook deliveries by outcome.",
    labelnames=["outcome"],
    registry=REGISTRY,
)

# ---------------------------------------------------------------------------
# Search metrics
# ---------------------------------------------------------------------------

SEARCH_RUNS_TOTAL = Counter(
    "filepilot_search_runs_total",
    "Finished search runs by terminal state.",
    labelnames=["state", "profile"],
    registry=REGISTRY,
)

SEARCH_RUN_DURATION_SECONDS = Histogram(
    "filepilot_search_run_duration_seconds",
    "Wall-clock duration of search runs.",
    labelnames=["profile"],
    buckets=(0.01, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0, 30.0, 60.0),
    registry=REGISTRY,
)


def metrics_text() -> tuple[bytes, str]:
    """Generate Prometheus exposition text and content-type header."""
    return generate_latest(REGISTRY), CONTENT_TYPE_LATEST
