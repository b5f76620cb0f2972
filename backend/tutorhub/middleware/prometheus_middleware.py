"""
Prometheus metrics middleware for HTTP request tracking.

Records duration and status code per request against a normalized
endpoint label.
"""

import re
import time
from typing import Callable

from fastapi import Request, Response
from starlette.middleware.base import BaseHTTPMiddleware

from ..monitoring.prometheus_metrics import prometheus_metrics

# Resource ids are ULIDs; collapse them to keep label cardinality bounded
_ULID_SEGMENT = re.compile(r"^[0-9A-HJKMNP-TV-Z]{26}$")


def normalize_path(raw_path: str) -> str:
    """``/api/v1/bookings/01HF...`` -> ``/api/v1/bookings/:id``"""
    return "/".join(
        ":id" if _ULID_SEGMENT.match(segment) or segment.isdigit() else segment
        for segment in raw_path.split("/")
    )


class PrometheusMiddleware(BaseHTTPMiddleware):
    """Middleware to collect Prometheus metrics for HTTP requests."""

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        if request.url.path == "/metrics/prometheus":
            return await call_next(request)

        path = normalize_path(request.url.path)
        start_time = time.time()
        response = await call_next(request)
        prometheus_metrics.record_http_request(
            method=request.method,
            endpoint=path,
            duration=time.time() - start_time,
            status_code=response.status_code,
        )
        return response
