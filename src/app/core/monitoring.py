"""Prometheus metrics, Sentry integration, and contract workflow tracking.

Provides:
- MetricsMiddleware: ASGI middleware for HTTP request metrics
- init_sentry(): Initialize Sentry with tenant-aware before_send callback
- track_contract_operation(): Context manager for workflow operation metrics
- record_stage_transition(): Counter for contract stage changes
- get_metrics_response(): Prometheus exposition for /metrics
"""

from __future__ import annotations

import time
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

from prometheus_client import (
    REGISTRY,
    Counter,
    Gauge,
    Histogram,
    generate_latest,
)
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import Response

# ── HTTP Metrics ─────────────────────────────────────────────────────────────

http_requests_total = Counter(
    "http_requests_total",
    "Total HTTP requests",
    ["method", "endpoint", "status_code", "tenant_id"],
)

http_request_duration_seconds = Histogram(
    "http_request_duration_seconds",
    "HTTP request duration in seconds",
    ["method", "endpoint", "tenant_id"],
    buckets=(0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0),
)

# ── Contract Workflow Metrics ────────────────────────────────────────────────

contract_transitions_total = Counter(
    "contract_transitions_total",
    "Contract stage transitions applied",
    ["from_stage", "to_stage", "tenant_id"],
)

contract_operations_total = Counter(
    "contract_operations_total",
    "Contract workflow operations by outcome",
    ["operation", "status"],
)

contract_operation_errors_total = Counter(
    "contract_operation_errors_total",
    "Contract workflow operations that failed, by error code",
    ["operation", "code"],
)

contract_operation_duration_seconds = Histogram(
    "contract_operation_duration_seconds",
    "Contract workflow operation duration in seconds",
    ["operation"],
    buckets=(0.005, 0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5),
)

# ── Platform Metrics ─────────────────────────────────────────────────────────

active_tenants = Gauge(
    "active_tenants",
    "Number of active tenants",
)


# ── Metrics Middleware ───────────────────────────────────────────────────────


class MetricsMiddleware(BaseHTTPMiddleware):
    """ASGI middleware that records Prometheus metrics for every HTTP request.

    Extracts tenant_id from the request context (if available) and records
    request count and duration per method/endpoint/tenant.
    Skips the /metrics endpoint itself to avoid self-referential counting.
    """

    async def dispatch(self, request: Request, call_next: RequestResponseEndpoint) -> Response:
        if request.url.path == "/metrics":
            return await call_next(request)

        tenant_id = "unknown"
        try:
            from src.app.core.tenant import get_current_tenant

            ctx = get_current_tenant()
            tenant_id = ctx.tenant_id
        except (RuntimeError, LookupError):
            pass

        start_time = time.perf_counter()
        response = await call_next(request)
        duration = time.perf_counter() - start_time

        # Route pattern keeps cardinality bounded (/contracts/{contract_id}, not raw IDs)
        route = request.scope.get("route")
        endpoint = getattr(route, "path", request.url.path)

        http_requests_total.labels(
            method=request.method,
            endpoint=endpoint,
            status_code=str(response.status_code),
            tenant_id=tenant_id,
        ).inc()

        http_request_duration_seconds.labels(
            method=request.method,
            endpoint=endpoint,
            tenant_id=tenant_id,
        ).observe(duration)

        return response


# ── Contract Workflow Helpers ────────────────────────────────────────────────


def record_stage_transition(from_stage: str, to_stage: str, tenant_id: str) -> None:
    """Count one applied stage transition."""
    contract_transitions_total.labels(
        from_stage=from_stage,
        to_stage=to_stage,
        tenant_id=tenant_id,
    ).inc()


@asynccontextmanager
async def track_contract_operation(operation: str) -> AsyncGenerator[None, None]:
    """Context manager that tracks a workflow operation's duration and outcome.

    Usage:
        async with track_contract_operation("advance_stage"):
            ...

    Exceptions carrying a ``code`` attribute (the workflow error taxonomy)
    are counted under that code; anything else counts as ``unexpected``.
    The exception is always re-raised.
    """
    start_time = time.perf_counter()
    status = "success"

    try:
        yield
    except Exception as exc:
        status = "error"
        contract_operation_errors_total.labels(
            operation=operation,
            code=getattr(exc, "code", "unexpected"),
        ).inc()
        raise
    finally:
        contract_operations_total.labels(operation=operation, status=status).inc()
        contract_operation_duration_seconds.labels(operation=operation).observe(
            time.perf_counter() - start_time
        )


# ── Sentry Integration ───────────────────────────────────────────────────────


def init_sentry(dsn: str, environment: str) -> None:
    """Initialize Sentry SDK with tenant-aware event tagging.

    Args:
        dsn: Sentry DSN string.
        environment: Deployment environment (development, staging, production).
    """
    import sentry_sdk
    from sentry_sdk.integrations.fastapi import FastApiIntegration
    from sentry_sdk.integrations.starlette import StarletteIntegration

    traces_sample_rate = 0.1 if environment == "production" else 1.0

    def before_send(event: dict, hint: dict) -> dict:
        """Add tenant context to Sentry events."""
        try:
            from src.app.core.tenant import get_current_tenant

            ctx = get_current_tenant()
            event.setdefault("tags", {})
            event["tags"]["tenant_id"] = ctx.tenant_id
            event["tags"]["tenant_slug"] = ctx.tenant_slug
        except (RuntimeError, LookupError):
            pass
        return event

    sentry_sdk.init(
        dsn=dsn,
        environment=environment,
        traces_sample_rate=traces_sample_rate,
        integrations=[
            StarletteIntegration(),
            FastApiIntegration(),
        ],
        before_send=before_send,
    )


# ── Metrics Endpoint ─────────────────────────────────────────────────────────


def get_metrics_response() -> Response:
    """Generate Prometheus exposition format response."""
    return Response(
        content=generate_latest(REGISTRY),
        media_type="text/plain; version=0.0.4; charset=utf-8",
    )
