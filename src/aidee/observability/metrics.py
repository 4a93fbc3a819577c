from __future__ import annotations

"""Prometheus metrics for the Aidee backend.

Adds an HTTP middleware that records request latency per method/path/status,
and a counter of chat stream outcomes.
"""

import time
from typing import Awaitable, Callable

from prometheus_client import Counter, Histogram
from starlette.requests import Request
from starlette.responses import Response

REQUEST_LATENCY = Histogram(
    "aidee_request_latency_seconds",
    "HTTP request latency in seconds",
    labelnames=("method", "path", "status"),
    buckets=(0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0, 2.0, 5.0, 10.0, 30.0),
)

CHAT_STREAMS = Counter(
    "aidee_chat_streams_total",
    "Chat relay streams by outcome",
    labelnames=("outcome",),
)


def record_stream(outcome: str) -> None:
    """outcome: completed | failed | not_configured"""
    CHAT_STREAMS.labels(outcome=outcome).inc()


def sanitize_path(path: str) -> str:
    """Collapse /projects/{id}/... style paths to their first two static segments."""
    if not path:
        return "/"
    segs = [s for s in path.split("?")[0].split("/") if s]
    if not segs:
        return "/"
    if segs[0] == "api" and len(segs) > 1:
        return f"/api/{segs[1]}"
    return "/" + segs[0]


def metrics_middleware_factory() -> Callable[[Request, Callable[[Request], Awaitable[Response]]], Awaitable[Response]]:
    async def middleware(request: Request, call_next: Callable[[Request], Awaitable[Response]]) -> Response:
        if request.url.path.startswith("/metrics"):
            return await call_next(request)
        start = time.perf_counter()
        response = await call_next(request)
        # Streaming responses are observed at header time, not at stream end
        elapsed = time.perf_counter() - start
        try:
            REQUEST_LATENCY.labels(
                method=request.method,
                path=sanitize_path(request.url.path),
                status=str(response.status_code),
            ).observe(elapsed)
        except Exception:
            pass
        return response

    return middleware
