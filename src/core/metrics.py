"""
Prometheus Metrics - Application Monitoring

Exposes metrics at /metrics endpoint for Prometheus scraping.
"""
import time
from decimal import Decimal

from fastapi import APIRouter, Response
from prometheus_client import CONTENT_TYPE_LATEST, Counter, Gauge, Histogram, Info, generate_latest
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import Response as StarletteResponse

from src.core.config import settings

# === Application Info ===
APP_INFO = Info("cagri_app", "Cagri application info")
APP_INFO.info({
    "version": settings.app_version,
    "environment": settings.environment,
})

# === Request Metrics ===
REQUEST_COUNT = Counter(
    "cagri_http_requests_total",
    "Total HTTP requests",
    ["method", "endpoint", "status_code"],
)

REQUEST_LATENCY = Histogram(
    "cagri_http_request_duration_seconds",
    "HTTP request latency",
    ["method", "endpoint"],
    buckets=[0.01, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0],
)

# === Business Metrics ===
JOB_TRANSITIONS = Counter(
    "cagri_job_transitions_total",
    "Marketplace job state transitions",
    ["event", "status"],
)

COMMISSION_DEBITED = Counter(
    "cagri_commission_debited_try_total",
    "Commission debited from buyer balances (TRY)",
)

BALANCE_TOP_UPS = Counter(
    "cagri_balance_top_ups_try_total",
    "Balance credited through top-ups (TRY)",
)

REJECTED_OPERATIONS = Counter(
    "cagri_rejected_operations_total",
    "Operations rejected with a typed error",
    ["code"],
)

# === SSE Metrics ===
SSE_CONNECTIONS = Gauge(
    "cagri_sse_connections",
    "Active SSE connections",
)


class MetricsMiddleware(BaseHTTPMiddleware):
    """Middleware to collect request metrics."""

    async def dispatch(self, request: Request, call_next) -> StarletteResponse:
        # Skip metrics endpoint itself
        if request.url.path == "/metrics":
            return await call_next(request)

        # Route template keeps label cardinality bounded (no job ids)
        method = request.method

        start_time = time.time()
        response = await call_next(request)
        duration = time.time() - start_time

        route = request.scope.get("route")
        endpoint = getattr(route, "path", request.url.path)

        REQUEST_COUNT.labels(
            method=method,
            endpoint=endpoint,
            status_code=response.status_code,
        ).inc()

        REQUEST_LATENCY.labels(
            method=method,
            endpoint=endpoint,
        ).observe(duration)

        return response


# === Metrics Router ===
router = APIRouter(tags=["Health"])


@router.get("/metrics", include_in_schema=False)
async def metrics():
    """Prometheus metrics endpoint."""
    return Response(
        content=generate_latest(),
        media_type=CONTENT_TYPE_LATEST,
    )


# === Helper Functions ===

def record_transition(event: str, status: str) -> None:
    """Record a job state transition."""
    JOB_TRANSITIONS.labels(event=event, status=status).inc()


def record_commission(amount: Decimal) -> None:
    """Record commission taken from a buyer."""
    COMMISSION_DEBITED.inc(float(amount))


def record_top_up(amount: Decimal) -> None:
    """Record a balance top-up."""
    BALANCE_TOP_UPS.inc(float(amount))


def record_rejection(code: str) -> None:
    """Record a rejected operation by error code."""
    REJECTED_OPERATIONS.labels(code=code).inc()


def sse_connection_opened() -> None:
    """Record SSE connection opened."""
    SSE_CONNECTIONS.inc()


def sse_connection_closed() -> None:
    """Record SSE connection closed."""
    SSE_CONNECTIONS.dec()
