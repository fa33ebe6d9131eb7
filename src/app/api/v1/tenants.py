"""Tenant provisioning endpoints.

Mounted under /api/v1/tenants, which TenantMiddleware skips: these calls
create and look up the workspaces that every other endpoint is scoped to,
so they cannot require an X-Tenant-ID themselves.
"""

from __future__ import annotations

from fastapi import APIRouter, HTTPException, status

from src.app.schemas.tenant import TenantCreate, TenantResponse
from src.app.services.tenant_provisioning import (
    get_tenant_by_slug,
    list_tenants,
    provision_tenant,
)

router = APIRouter(prefix="/api/v1/tenants", tags=["tenants"])


@router.post("", response_model=TenantResponse, status_code=status.HTTP_201_CREATED)
async def create_tenant(body: TenantCreate) -> TenantResponse:
    """Provision a workspace: schema, transfer tables, RLS, cached lookup."""
    tenant = await provision_tenant(slug=body.slug, name=body.name, kind=body.kind)
    return TenantResponse(**tenant)


@router.get("", response_model=list[TenantResponse])
async def get_tenants() -> list[TenantResponse]:
    """Active workspaces, oldest first."""
    return [TenantResponse(**t) for t in await list_tenants()]


@router.get("/{slug}", response_model=TenantResponse)
async def get_tenant(slug: str) -> TenantResponse:
    """Resolve a slug to its tenant ID (clients send the ID as X-Tenant-ID)."""
    tenant = await get_tenant_by_slug(slug)
    if tenant is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail={"code": "not_found", "message": f"Tenant not found: {slug}"},
        )
    return TenantResponse(**tenant)
