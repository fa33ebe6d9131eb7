"""Pydantic schemas for tenant provisioning endpoints."""

from __future__ import annotations

from datetime import datetime
from enum import Enum

from pydantic import BaseModel, Field


class TenantKind(str, Enum):
    """What kind of organisation owns the workspace."""

    CLUB = "club"
    AGENCY = "agency"
    FEDERATION = "federation"


class TenantCreate(BaseModel):
    """Request schema for provisioning a workspace.

    The slug becomes the Postgres schema name (``tenant_<slug>``), so it is
    restricted to lowercase letters, digits and inner hyphens.
    """

    slug: str = Field(
        ...,
        min_length=3,
        max_length=50,
        pattern=r"^[a-z0-9][a-z0-9-]*[a-z0-9]$",
        examples=["riverside-fc", "northbank-agency"],
    )
    name: str = Field(..., min_length=1, max_length=200, examples=["Riverside FC"])
    kind: TenantKind = TenantKind.CLUB


class TenantResponse(BaseModel):
    id: str
    slug: str
    name: str
    kind: TenantKind = TenantKind.CLUB
    schema_name: str
    is_active: bool = True
    created_at: datetime | None = None
