"""Shared schema models -- tables that exist once in the 'shared' schema.

The Tenant model lives here because it's used for tenant resolution and
is not duplicated per tenant schema. Each tenant is a club, agency or
federation workspace.
"""

from __future__ import annotations

import uuid
from datetime import datetime

from sqlalchemy import Boolean, DateTime, String, func, text
from sqlalchemy.dialects.postgresql import JSON, UUID
from sqlalchemy.orm import Mapped, mapped_column

from src.app.core.database import SharedBase


class Tenant(SharedBase):
    """Registered tenant in the platform.

    Each tenant gets its own PostgreSQL schema (schema_name) with
    transfer tables (pitches, contracts, timeline, notifications) and RLS
    policies.
    """

    __tablename__ = "tenants"

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        primary_key=True,
        server_default=text("gen_random_uuid()"),
    )
    slug: Mapped[str] = mapped_column(String(50), unique=True, nullable=False)
    name: Mapped[str] = mapped_column(String(200), nullable=False)
    schema_name: Mapped[str] = mapped_column(String(100), unique=True, nullable=False)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, server_default=text("true"))
    config: Mapped[dict | None] = mapped_column(JSON, nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
    )
    updated_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True),
        onupdate=func.now(),
        nullable=True,
    )

    @property
    def kind(self) -> str:
        """Organisation type (club, agency, federation), kept in ``config``."""
        return (self.config or {}).get("kind", "club")
