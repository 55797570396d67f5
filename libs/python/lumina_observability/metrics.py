"""Prometheus metrics helpers and middleware."""

from __future__ import annotations

from time import perf_counter

from fastapi import FastAPI, Response
from prometheus_client import CONTENT_TYPE_LATEST, Counter, Gauge, Histogram, generate_latest
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request

_HTTP_REQUEST_COUNT = Counter(
    "lumina_http_requests_total",
    "Total HTTP requests processed by service",
    labelnames=("service", "method", "route", "status"),
)

_HTTP_REQUEST_LATENCY = Histogram(
    "lumina_http_request_duration_seconds",
    "Latency of HTTP requests",
    labelnames=("service", "method", "route"),
)

_STAGE_DURATION = Histogram(
    "lumina_pipeline_stage_duration_seconds",
    "Duration of generation pipeline stages",
    labelnames=("service", "stage"),
)

_STAGE_COUNTER = Counter(
    "lumina_pipeline_stage_runs_total",
    "Count of pipeline stage executions by outcome",
    labelnames=("service", "stage", "status"),
)

_PROVIDER_LATENCY = Histogram(
    "lumina_provider_call_duration_seconds",
    "Latency of generation provider calls",
    labelnames=("service", "provider", "operation", "status"),
)

_CREDITS_MOVED = Counter(
    "lumina_credits_total",
    "Credits debited from or refunded to the ledger",
    labelnames=("service", "direction", "kind"),
)

_LEDGER_BALANCE = Gauge(
    "lumina_ledger_balance_credits",
    "Current credit balance held by the ledger",
    labelnames=("service",),
)


class PrometheusMiddleware(BaseHTTPMiddleware):
    """Collect request metrics for FastAPI services."""

    def __init__(self, app: FastAPI, service_name: str) -> None:
        super().__init__(app)
        self.service_name = service_name

    async def dispatch(self, request: Request, call_next):  # type: ignore[override]
        start = perf_counter()
        response = await call_next(request)
        elapsed = perf_counter() - start

        route_template = request.url.path
        route = request.scope.get("route")
        if route and getattr(route, "path", None):
            route_template = route.path  # type: ignore[assignment]

        status = getattr(response, "status_code", 500)
        _HTTP_REQUEST_COUNT.labels(self.service_name, request.method, route_template, str(status)).inc()
        _HTTP_REQUEST_LATENCY.labels(self.service_name, request.method, route_template).observe(elapsed)
        return response


def setup_fastapi_metrics(app: FastAPI, service_name: str, endpoint: str = "/metrics") -> None:
    """Register Prometheus middleware and metrics endpoint for a FastAPI app."""

    if getattr(app.state, "metrics_configured", False):
        return

    app.add_middleware(PrometheusMiddleware, service_name=service_name)

    @app.get(endpoint, include_in_schema=False)
    async def _metrics_endpoint() -> Response:
        return Response(content=generate_latest(), media_type=CONTENT_TYPE_LATEST)

    app.state.metrics_configured = True


def observe_stage_duration(
    stage: str,
    duration_seconds: float,
    *,
    service_name: str,
    status: str = "success",
) -> None:
    """Record metrics for stage execution duration and outcome."""

    _STAGE_DURATION.labels(service_name, stage).observe(max(duration_seconds, 0.0))
    _STAGE_COUNTER.labels(service_name, stage, status).inc()


def observe_provider_call(
    *,
    provider: str,
    operation: str,
    duration_seconds: float,
    service_name: str,
    status: str = "success",
) -> None:
    _PROVIDER_LATENCY.labels(service_name, provider, operation, status).observe(
        max(duration_seconds, 0.0)
    )


def record_credit_movement(
    direction: str,
    amount: int,
    *,
    kind: str,
    service_name: str,
    balance: int | None = None,
) -> None:
    """Count credits moving through the ledger (``direction`` is debit, credit or refund)."""

    if amount > 0:
        _CREDITS_MOVED.labels(service_name, direction, kind).inc(amount)
    if balance is not None:
        _LEDGER_BALANCE.labels(service_name).set(balance)
