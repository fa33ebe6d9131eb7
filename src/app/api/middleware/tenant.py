"""Tenant resolution middleware.

Resolves the tenant from the X-Tenant-ID header, checking the Redis lookup
cache before falling back to shared.tenants, and sets TenantContext in
contextvars for the request scope. Paths in SKIP_TENANT_PATHS bypass
resolution (health, metrics, docs, tenant provisioning).
"""

from __future__ import annotations

import json
import logging

import redis.asyncio as aioredis
from fastapi import Request, Response
from fastapi.responses import JSONResponse
from sqlalchemy import text
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint

from src.app.core.redis import TENANT_CACHE_TTL_SECONDS, tenant_cache_key
from src.app.core.tenant import (
    SKIP_TENANT_PATHS,
    TenantContext,
    reset_tenant_context,
    set_tenant_context,
)

logger = logging.getLogger(__name__)

TENANT_HEADER = "X-Tenant-ID"


class TenantMiddleware(BaseHTTPMiddleware):
    """Middleware that resolves tenant from the X-Tenant-ID header and sets context.

    Missing header -> 400, unknown or inactive tenant -> 404. Both use the
    same ``{"code", "message"}`` body as the domain errors.
    """

    def __init__(self, app, redis_client: aioredis.Redis | None = None):
        super().__init__(app)
        self._redis = redis_client

    async def dispatch(self, request: Request, call_next: RequestResponseEndpoint) -> Response:
        path = request.url.path
        if any(path.startswith(skip) for skip in SKIP_TENANT_PATHS):
            return await call_next(request)

        tenant_id = request.headers.get(TENANT_HEADER)
        if not tenant_id:
            return JSONResponse(
                status_code=400,
                content={"detail": {"code": "missing_tenant", "message": f"Missing {TENANT_HEADER} header"}},
            )

        tenant_ctx = await self._resolve_tenant(tenant_id)
        if not tenant_ctx:
            return JSONResponse(
                status_code=404,
                content={"detail": {"code": "not_found", "message": f"Tenant not found: {tenant_id}"}},
            )

        token = set_tenant_context(tenant_ctx)
        try:
            return await call_next(request)
        finally:
            reset_tenant_context(token)

    async def _resolve_tenant(self, tenant_id: str) -> TenantContext | None:
        """Resolve tenant by ID, using Redis cache when available."""
        if self._redis:
            try:
                cached = await self._redis.get(tenant_cache_key(tenant_id))
                if cached:
                    data = json.loads(cached)
                    return TenantContext(
                        tenant_id=data["tenant_id"],
                        tenant_slug=data["tenant_slug"],
                        schema_name=data["schema_name"],
                    )
            except (aioredis.RedisError, ValueError, KeyError):
                logger.warning("Redis cache lookup failed for tenant %s", tenant_id)

        # Imported here to avoid circular imports
        from src.app.core.database import get_engine

        engine = get_engine()
        async with engine.connect() as conn:
            result = await conn.execute(
                text("SELECT id, slug, schema_name FROM shared.tenants WHERE id::text = :tid AND is_active = true"),
                {"tid": tenant_id},
            )
            row = result.first()
            if not row:
                return None

        ctx = TenantContext(
            tenant_id=str(row.id),
            tenant_slug=row.slug,
            schema_name=row.schema_name,
        )

        if self._redis:
            try:
                await self._redis.set(
                    tenant_cache_key(tenant_id),
                    json.dumps({"tenant_id": ctx.tenant_id, "tenant_slug": ctx.tenant_slug, "schema_name": ctx.schema_name}),
                    ex=TENANT_CACHE_TTL_SECONDS,
                )
            except aioredis.RedisError:
                logger.warning("Redis cache set failed for tenant %s", tenant_id)

        return ctx
