"""Prometheus instrumentation, enabled with ``metrics_enabled``."""

import time

from fastapi import FastAPI, Request, Response
from prometheus_client import (
    CONTENT_TYPE_LATEST,
    CollectorRegistry,
    Counter,
    GCCollector,
    Histogram,
    PlatformCollector,
    ProcessCollector,
    generate_latest,
)
from starlette.middleware.base import BaseHTTPMiddleware

METRICS_PATH = "/metrics"
NAMESPACE = "taskflow_backend"
LABELS = ["method", "route", "status_code"]


class TaskFlowMetrics:
    """Registry owned by one application instance."""

    def __init__(self, namespace: str = NAMESPACE):
        self.registry = CollectorRegistry()
        ProcessCollector(namespace=namespace, registry=self.registry)
        PlatformCollector(registry=self.registry)
        GCCollector(registry=self.registry)

        self.request_duration = Histogram(
            f"{namespace}_http_request_duration_seconds",
            "HTTP request latency",
            LABELS,
            buckets=(0.1, 0.3, 0.5, 1, 2, 5),
            registry=self.registry,
        )
        self.requests_total = Counter(
            f"{namespace}_http_requests_total",
            "Total HTTP requests",
            LABELS,
            registry=self.registry,
        )

    def observe(self, method: str, route: str, status_code: int, seconds: float):
        labels = (method, route, str(status_code))
        self.request_duration.labels(*labels).observe(seconds)
        self.requests_total.labels(*labels).inc()

    def render(self) -> bytes:
        return generate_latest(self.registry)


def route_template(request: Request) -> str:
    """Path template of the route that served the request, so ids don't explode
    label cardinality. Only known once the router has dispatched."""
    return getattr(request.scope.get("route"), "path", None) or "unmatched"


class MetricsMiddleware(BaseHTTPMiddleware):
    def __init__(self, app, metrics: TaskFlowMetrics):
        super().__init__(app)
        self.metrics = metrics

    async def dispatch(self, request: Request, call_next):
        if request.url.path == METRICS_PATH:
            return await call_next(request)

        status_code = 500
        start = time.perf_counter()
        try:
            response = await call_next(request)
            status_code = response.status_code
            return response
        finally:
            elapsed = time.perf_counter() - start
            self.metrics.observe(
                request.method, route_template(request), status_code, elapsed
            )


def install_metrics(app: FastAPI) -> TaskFlowMetrics:
    metrics = TaskFlowMetrics()
    app.add_middleware(MetricsMiddleware, metrics=metrics)

    @app.get(METRICS_PATH, include_in_schema=False)
    async def prometheus_metrics():
        return Response(metrics.render(), media_type=CONTENT_TYPE_LATEST)

    return metrics
