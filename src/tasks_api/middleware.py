"""HTTP access logging and request metrics middleware."""

import logging
import time
from collections.abc import Awaitable, Callable
from typing import Any

from fastapi import Request, Response
from opentelemetry import metrics
from starlette.middleware.base import BaseHTTPMiddleware


access_logger = logging.getLogger("tasks_api.access")

_meter: metrics.Meter | None = None
_request_count: metrics.Counter | None = None
_request_duration: metrics.Histogram | None = None


def _init_metrics() -> None:
    global _meter, _request_count, _request_duration
    if _meter is None:
        _meter = metrics.get_meter("http.server")
        _request_count = _meter.create_counter(
            name="http.server.request.count",
            description="Total HTTP requests",
            unit="{request}",
        )
        _request_duration = _meter.create_histogram(
            name="http.server.request.duration",
            description="HTTP request duration",
            unit="s",
        )


def _route_template(request: Request) -> str:
    route = request.scope.get("route")
    return getattr(route, "path", request.url.path)


class AccessLogMiddleware(BaseHTTPMiddleware):
    """One log line and one metric sample per request (``/health`` excluded)."""

    async def dispatch(
        self, request: Request, call_next: Callable[[Request], Awaitable[Response]]
    ) -> Response:
        if request.url.path == "/health":
            return await call_next(request)

        _init_metrics()
        assert _request_count is not None
        assert _request_duration is not None

        status_code = 500
        start_time = time.perf_counter()
        try:
            response = await call_next(request)
            status_code = response.status_code
            return response
        finally:
            duration = time.perf_counter() - start_time
            attributes: dict[str, Any] = {
                "http.request.method": request.method,
                "http.route": _route_template(request),
                "http.response.status_code": status_code,
            }
            _request_count.add(1, attributes)
            _request_duration.record(duration, attributes)
            client = request.client.host if request.client else "-"
            access_logger.info(
                '%s "%s %s" %d %.1fms',
                client,
                request.method,
                request.url.path,
                status_code,
                duration * 1000,
            )
