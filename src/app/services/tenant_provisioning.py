"""Tenant provisioning service.

Creates a tenant (a club, agency or federation workspace) with its own
PostgreSQL schema holding the transfer tables, each under a tenant
isolation RLS policy, registers it in shared.tenants and warms the
tenant lookup cache.
"""

from __future__ import annotations

import json
import logging
import re
import uuid

from fastapi import HTTPException
from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncConnection

# Registers the transfer tables on TenantBase.metadata
import src.app.contracts.models  # noqa: F401
import src.app.notifications.models  # noqa: F401
import src.app.timeline.models  # noqa: F401
from src.app.core.database import TenantBase, get_engine
from src.app.core.redis import TENANT_CACHE_TTL_SECONDS, get_redis_pool, tenant_cache_key
from src.app.core.tenant import schema_name_for
from src.app.schemas.tenant import TenantKind

logger = logging.getLogger(__name__)

# Slug validation: lowercase alphanumeric + hyphens, 3-50 chars
SLUG_PATTERN = re.compile(r"^[a-z0-9][a-z0-9-]{1,48}[a-z0-9]$")

_TENANT_COLUMNS = "id, slug, name, schema_name, is_active, config, created_at"


def _row_to_tenant(row) -> dict:
    config = row.config or {}
    return {
        "id": str(row.id),
        "slug": row.slug,
        "name": row.name,
        "kind": config.get("kind", TenantKind.CLUB.value),
        "schema_name": row.schema_name,
        "is_active": row.is_active,
        "created_at": row.created_at,
    }


async def _create_tenant_tables(conn: AsyncConnection, schema_name: str) -> list[str]:
    """Create every TenantBase table in ``schema_name`` and enable RLS on it."""
    scoped = await conn.execution_options(schema_translate_map={"tenant": schema_name})
    await scoped.run_sync(TenantBase.metadata.create_all)

    tables = [table.name for table in TenantBase.metadata.sorted_tables]
    for table in tables:
        await conn.execute(text(f'ALTER TABLE "{schema_name}".{table} ENABLE ROW LEVEL SECURITY'))
        await conn.execute(text(f'ALTER TABLE "{schema_name}".{table} FORCE ROW LEVEL SECURITY'))
        await conn.execute(text(f"""
            CREATE POLICY tenant_isolation ON "{schema_name}".{table}
            FOR ALL
            USING (tenant_id::text = current_setting('app.current_tenant_id', true))
            WITH CHECK (tenant_id::text = current_setting('app.current_tenant_id', true))
        """))
    return tables


async def provision_tenant(slug: str, name: str, kind: TenantKind = TenantKind.CLUB) -> dict:
    """Provision a new tenant with isolated schema, RLS, and a warm lookup cache.

    Steps:
    1. Validate slug format
    2. Compute schema_name
    3. Check for duplicate slug
    4. Create PostgreSQL schema, transfer tables and RLS policies
    5. Insert tenant record in shared.tenants (kind kept in ``config``)
    6. Cache the tenant lookup for TenantMiddleware

    Raises:
        HTTPException(400): Invalid slug format
        HTTPException(409): Tenant with slug already exists
    """
    if not SLUG_PATTERN.match(slug):
        raise HTTPException(
            status_code=400,
            detail="Slug must be 3-50 chars, lowercase alphanumeric and hyphens only, "
                   "must start and end with alphanumeric character.",
        )

    schema_name = schema_name_for(slug)
    tenant_id = uuid.uuid4()

    engine = get_engine()
    async with engine.begin() as conn:
        result = await conn.execute(
            text("SELECT id FROM shared.tenants WHERE slug = :slug"),
            {"slug": slug},
        )
        if result.first():
            raise HTTPException(status_code=409, detail=f"Tenant with slug '{slug}' already exists")

        await conn.execute(text(f'CREATE SCHEMA IF NOT EXISTS "{schema_name}"'))
        tables = await _create_tenant_tables(conn, schema_name)

        result = await conn.execute(
            text(f"""
                INSERT INTO shared.tenants (id, slug, name, schema_name, is_active, config, created_at)
                VALUES (:id, :slug, :name, :schema_name, true, CAST(:config AS json), now())
                RETURNING {_TENANT_COLUMNS}
            """),
            {
                "id": tenant_id,
                "slug": slug,
                "name": name,
                "schema_name": schema_name,
                "config": json.dumps({"kind": kind.value}),
            },
        )
        tenant = _row_to_tenant(result.one())

    logger.info("Provisioned %s tenant %s (%s) with tables: %s", kind.value, slug, schema_name, ", ".join(tables))

    # Cache miss only costs one lookup query, so a Redis outage is not fatal here
    try:
        redis = get_redis_pool()
        await redis.set(
            tenant_cache_key(tenant["id"]),
            json.dumps({"tenant_id": tenant["id"], "tenant_slug": slug, "schema_name": schema_name}),
            ex=TENANT_CACHE_TTL_SECONDS,
        )
    except Exception:
        logger.warning("Failed to warm tenant lookup cache for tenant %s", slug)

    return tenant


async def list_tenants() -> list[dict]:
    """List all active tenants, oldest first."""
    engine = get_engine()
    async with engine.connect() as conn:
        result = await conn.execute(
            text(
                f"SELECT {_TENANT_COLUMNS} FROM shared.tenants "
                "WHERE is_active = true ORDER BY created_at"
            )
        )
        return [_row_to_tenant(row) for row in result.fetchall()]


async def get_tenant_by_slug(slug: str) -> dict | None:
    """Look up an active tenant by slug. Returns None when absent."""
    engine = get_engine()
    async with engine.connect() as conn:
        result = await conn.execute(
            text(f"SELECT {_TENANT_COLUMNS} FROM shared.tenants WHERE slug = :slug AND is_active = true"),
            {"slug": slug},
        )
        row = result.first()
    return _row_to_tenant(row) if row else None
