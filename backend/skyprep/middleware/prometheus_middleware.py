"""
HTTP metrics middleware.

Every request except the scrape itself is timed and counted under a
normalized endpoint label; session ids are collapsed to ``:id``.
"""

import re
import time
from typing import Callable

from fastapi import Request, Response
from starlette.middleware.base import BaseHTTPMiddleware

from ..monitoring.prometheus_metrics import prometheus_metrics

METRICS_PATH = "/metrics"

_ULID_SEGMENT = re.compile(r"^[0-9A-HJKMNP-TV-Z]{26}$")


def normalize_path(raw_path: str) -> str:
    """Collapse ids in a path so the endpoint label stays low-cardinality."""
    # /api/v1/sessions/01HF4G12ABCDEF3456789XYZAB/cancel -> /api/v1/sessions/:id/cancel
    return "/".join(
        ":id" if segment.isdigit() or _ULID_SEGMENT.match(segment) else segment
        for segment in raw_path.split("/")
    )


class PrometheusMiddleware(BaseHTTPMiddleware):
    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        if request.url.path == METRICS_PATH:
            return await call_next(request)

        method = request.method
        endpoint = normalize_path(request.url.path)
        prometheus_metrics.track_http_request_start(method, endpoint)
        started = time.perf_counter()
        status_code = 500
        try:
            response = await call_next(request)
            status_code = response.status_code
            return response
        finally:
            prometheus_metrics.record_http_request(
                method=method,
                endpoint=endpoint,
                duration=time.perf_counter() - started,
                status_code=status_code,
            )
            prometheus_metrics.track_http_request_end(method, endpoint)
