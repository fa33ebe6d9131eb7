"""FastAPI application factory.

Creates the app with tenant middleware, logging middleware, metrics middleware,
CORS, Sentry, lifespan events for database initialization and contract
workflow wiring, and the v1 API router.
"""

from __future__ import annotations

from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

import structlog
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.requests import Request
from fastapi.responses import Response
from fastapi.staticfiles import StaticFiles

from src.app.api.middleware.logging import LoggingMiddleware, configure_structlog
from src.app.api.middleware.tenant import TenantMiddleware
from src.app.api.v1.router import router as v1_router
from src.app.config import get_settings
from src.app.core.database import close_db, get_tenant_session, init_db
from src.app.core.monitoring import MetricsMiddleware, get_metrics_response, init_sentry
from src.app.core.redis import close_redis, get_redis_pool


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Application lifespan: init DB, Sentry and the contract workflow; close on shutdown."""
    log = structlog.get_logger(__name__)
    settings = get_settings()
    configure_structlog()
    await init_db()

    if settings.SENTRY_DSN:
        init_sentry(dsn=settings.SENTRY_DSN, environment=settings.ENVIRONMENT.value)

    # ── Contract Workflow Initialization ────────────────────────────────
    # Failure leaves the domain routers answering 503 instead of
    # preventing startup (health and metrics stay available).
    try:
        from src.app.contracts.repository import ContractRepository
        from src.app.contracts.workflow import ContractWorkflow
        from src.app.notifications.service import NotificationRepository, NotificationService
        from src.app.storage.signatures import LocalSignatureStore
        from src.app.timeline.recorder import TimelineRecorder
        from src.app.timeline.repository import TimelineRepository

        contract_repository = ContractRepository(session_factory=get_tenant_session)
        timeline_repository = TimelineRepository(session_factory=get_tenant_session)
        notification_repository = NotificationRepository(session_factory=get_tenant_session)

        app.state.contract_repository = contract_repository
        app.state.timeline_repository = timeline_repository
        app.state.notification_repository = notification_repository
        app.state.contract_workflow = ContractWorkflow(
            repository=contract_repository,
            notifier=NotificationService(notification_repository),
            signature_store=LocalSignatureStore(
                root=settings.SIGNATURE_STORAGE_DIR,
                base_url=settings.SIGNATURE_PUBLIC_BASE_URL,
                max_bytes=settings.SIGNATURE_MAX_BYTES,
            ),
            timeline_recorder=TimelineRecorder(timeline_repository),
            settings=settings,
        )
        log.info(
            "contracts.workflow_initialized",
            service_charge_rate=settings.SERVICE_CHARGE_RATE,
            response_window_days=settings.CONTRACT_RESPONSE_WINDOW_DAYS,
        )
    except Exception:
        log.warning("contracts.workflow_init_failed", exc_info=True)
        app.state.contract_repository = None
        app.state.timeline_repository = None
        app.state.notification_repository = None
        app.state.contract_workflow = None

    yield

    await close_db()
    await close_redis()


def create_app() -> FastAPI:
    """Create and configure the FastAPI application."""
    settings = get_settings()

    app = FastAPI(
        title="TransferDesk API",
        version="0.1.0",
        description="Multi-tenant transfer marketplace: pitches, contract negotiation, and team timelines",
        lifespan=lifespan,
    )

    # Middleware is added in reverse order (last added = outermost)

    # Tenant middleware (inner -- resolves tenant context from X-Tenant-ID)
    redis_client = get_redis_pool()
    app.add_middleware(TenantMiddleware, redis_client=redis_client)

    # CORS middleware
    if settings.CORS_ALLOWED_ORIGINS == "*":
        origins = ["*"]
    else:
        origins = [o.strip() for o in settings.CORS_ALLOWED_ORIGINS.split(",")]
    app.add_middleware(
        CORSMiddleware,
        allow_origins=origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # Logging middleware (logs every request with timing)
    app.add_middleware(LoggingMiddleware)

    # Metrics middleware (outermost -- records Prometheus metrics for all requests)
    app.add_middleware(MetricsMiddleware)

    app.include_router(v1_router)

    # Signature images written by LocalSignatureStore
    if settings.SIGNATURE_PUBLIC_BASE_URL.startswith("/"):
        app.mount(
            settings.SIGNATURE_PUBLIC_BASE_URL,
            StaticFiles(directory=settings.SIGNATURE_STORAGE_DIR, check_dir=False),
            name="signatures",
        )

    # Prometheus metrics endpoint (infrastructure route, outside v1 router)
    @app.get("/metrics", include_in_schema=False)
    async def metrics(request: Request) -> Response:
        """Prometheus metrics endpoint."""
        return get_metrics_response()

    return app


# Module-level app for uvicorn
app = create_app()
