from __future__ import annotations

import time
from collections.abc import Awaitable, Callable

from fastapi import APIRouter, Request
from prometheus_client import CONTENT_TYPE_LATEST, Counter, Histogram, generate_latest
from starlette.responses import Response

RequestHandler = Callable[[Request], Awaitable[Response]]

REQUESTS = Counter(
    "api_requests_total", "Total HTTP requests", ["method", "path", "status"]
)
LATENCY = Histogram(
    "api_request_duration_seconds", "Request duration seconds", ["method", "path"]
)

router = APIRouter()


@router.get("/metrics", include_in_schema=False)
def metrics() -> Response:
    """Expose the latest Prometheus sample set."""
    return Response(generate_latest(), media_type=CONTENT_TYPE_LATEST)


def _path_label(request: Request) -> str:
    """Prefer route templates (`/alerts/{alert_id}`) so alert ids never become labels."""
    route = request.scope.get("route")
    path_template = getattr(route, "path_format", None) or getattr(route, "path", None)
    return path_template or request.url.path


async def metrics_middleware(request: Request, call_next: RequestHandler) -> Response:
    """Count requests by outcome and time them per route template."""
    started = time.perf_counter()
    status = "500"
    try:
        response = await call_next(request)
        status = str(response.status_code)
        return response
    finally:
        # The route is only resolved once the request went through the router.
        path_label = _path_label(request)
        LATENCY.labels(method=request.method, path=path_label).observe(
            time.perf_counter() - started
        )
        REQUESTS.labels(method=request.method, path=path_label, status=status).inc()
