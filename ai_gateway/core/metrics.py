"""Prometheus metrics for the application."""

import time

from prometheus_client import Counter, Histogram, Info, generate_latest
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import Response

# --- Metrics ---

APP_INFO = Info("ai_gateway", "AI Provider Gateway application info")
APP_INFO.info({"version": "1.0.0", "name": "ai_gateway"})

REQUEST_COUNT = Counter(
    "http_requests_total",
    "Total HTTP requests",
    ["method", "path", "status"],
)

REQUEST_DURATION = Histogram(
    "http_request_duration_seconds",
    "HTTP request duration in seconds",
    ["method", "path"],
    buckets=[0.01, 0.05, 0.1, 0.25, 0.5, 1, 2.5, 5, 10, 30],
)

PROVIDER_REQUESTS = Counter(
    "ai_gateway_requests_total",
    "Provider call attempts",
    ["provider", "status"],
)

PROVIDER_DURATION = Histogram(
    "ai_gateway_request_duration_seconds",
    "Provider call duration in seconds",
    ["provider"],
    buckets=[0.1, 0.25, 0.5, 1, 2.5, 5, 10, 30, 60],
)

FALLBACKS = Counter(
    "ai_gateway_fallbacks_total",
    "Completions served by a fallback provider",
    ["from_provider", "to_provider"],
)

CACHE_EVENTS = Counter(
    "ai_gateway_cache_events_total",
    "Response cache hits, misses and writes",
    ["event"],
)

TOKENS_TOTAL = Counter(
    "ai_gateway_tokens_total",
    "Tokens consumed",
    ["provider", "kind"],
)

COST_TOTAL = Counter(
    "ai_gateway_cost_usd_total",
    "Estimated spend in USD",
    ["provider"],
)


# --- Middleware ---

# Normalize dynamic path segments to reduce cardinality
_PATH_PREFIXES = ("/api/v1/providers/",)


def _normalize_path(path: str) -> str:
    """Replace provider names in paths with {name} to bound cardinality."""
    for prefix in _PATH_PREFIXES:
        if path.startswith(prefix):
            rest = path[len(prefix) :]
            parts = rest.split("/", 1)
            if parts[0] and parts[0] != "health":
                tail = f"/{parts[1]}" if len(parts) > 1 else ""
                return f"{prefix}{{name}}{tail}"
    return path


class PrometheusMiddleware(BaseHTTPMiddleware):
    """Collect HTTP request metrics for Prometheus."""

    async def dispatch(self, request: Request, call_next) -> Response:
        if request.url.path == "/metrics":
            return await call_next(request)

        method = request.method
        path = _normalize_path(request.url.path)

        start = time.perf_counter()
        response = await call_next(request)
        duration = time.perf_counter() - start

        REQUEST_COUNT.labels(method=method, path=path, status=response.status_code).inc()
        REQUEST_DURATION.labels(method=method, path=path).observe(duration)

        return response


def metrics_response() -> Response:
    """Generate Prometheus /metrics response."""
    return Response(
        content=generate_latest(),
        media_type="text/plain; version=0.0.4; charset=utf-8",
    )
