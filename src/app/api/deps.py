"""FastAPI dependency injection for tenant context and caller identity.

These dependencies are used in endpoint function signatures to inject the
tenant context (set by TenantMiddleware) and the calling profile. There is
no authentication layer: the caller's profile ID is taken from the
X-Profile-ID header as-is.
"""

from __future__ import annotations

import uuid

from fastapi import Header, HTTPException, status

from src.app.core.tenant import TenantContext, get_current_tenant

PROFILE_HEADER = "X-Profile-ID"


async def get_tenant() -> TenantContext:
    """Get the current tenant context (set by TenantMiddleware)."""
    return get_current_tenant()


def _normalize_profile_id(value: str) -> str:
    try:
        return str(uuid.UUID(value))
    except ValueError:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail={"code": "invalid_actor", "message": f"{PROFILE_HEADER} must be a UUID"},
        )


async def get_actor_id(
    x_profile_id: str | None = Header(default=None, alias=PROFILE_HEADER),
) -> str:
    """Profile ID of the caller, required for actor-checked mutations.

    Raises:
        HTTPException(401): Header missing.
        HTTPException(400): Header is not a UUID.
    """
    if not x_profile_id:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail={"code": "missing_actor", "message": f"Missing {PROFILE_HEADER} header"},
        )
    return _normalize_profile_id(x_profile_id)


async def get_optional_actor_id(
    x_profile_id: str | None = Header(default=None, alias=PROFILE_HEADER),
) -> str | None:
    """Profile ID of the caller when supplied (recorded in history, not checked)."""
    if not x_profile_id:
        return None
    return _normalize_profile_id(x_profile_id)
