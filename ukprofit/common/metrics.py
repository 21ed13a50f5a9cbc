"""Prometheus metric definitions shared across services."""

from time import perf_counter

from fastapi import FastAPI, Request
from prometheus_client import Counter, Histogram, generate_latest
from starlette.responses import Response


webhook_events_total = Counter(
    "webhook_events_total",
    "Stripe webhook deliveries by event type and handling outcome",
    ["service", "event_type", "outcome"],
)
written_request_transitions_total = Counter(
    "written_request_transitions_total",
    "Applied written-request status transitions",
    ["service", "to_status"],
)
notifications_total = Counter(
    "notifications_total",
    "Admin notification attempts by result",
    ["service", "result"],
)
checkout_sessions_total = Counter(
    "checkout_sessions_total",
    "Checkout session creation attempts by result",
    ["service", "result"],
)
http_requests_total = Counter(
    "http_requests_total",
    "Total HTTP requests",
    ["service", "route", "method", "status_code"],
)
http_request_duration_seconds = Histogram(
    "http_request_duration_seconds",
    "HTTP request duration seconds",
    ["service", "route", "method"],
)


def install_http_metrics(app: FastAPI, service_name: str) -> None:
    """Record request count and latency for every HTTP call handled by `app`."""

    @app.middleware("http")
    async def metrics_middleware(request: Request, call_next):
        start = perf_counter()
        route = request.url.path
        method = request.method
        status_code = 500
        try:
            response = await call_next(request)
            status_code = response.status_code
            route_obj = request.scope.get("route")
            if route_obj is not None and getattr(route_obj, "path", None):
                route = route_obj.path
            return response
        finally:
            elapsed = max(0.0, perf_counter() - start)
            http_request_duration_seconds.labels(
                service=service_name,
                route=route,
                method=method,
            ).observe(elapsed)
            http_requests_total.labels(
                service=service_name,
                route=route,
                method=method,
                status_code=str(status_code),
            ).inc()


def metrics_response() -> Response:
    """Expose all registered Prometheus metrics in text format."""

    return Response(content=generate_latest(), media_type="text/plain")
