"""V1 API router -- aggregates all v1 endpoint routers.

Health and tenant provisioning carry their own paths; the tenant-scoped
domain routers are mounted under /api/v1.
"""

from __future__ import annotations

from fastapi import APIRouter

from src.app.api.v1 import contracts, health, notifications, pitches, tenants, timeline

API_V1_PREFIX = "/api/v1"

router = APIRouter()

router.include_router(health.router)
router.include_router(tenants.router)
router.include_router(pitches.router, prefix=API_V1_PREFIX)
router.include_router(contracts.router, prefix=API_V1_PREFIX)
router.include_router(timeline.router, prefix=API_V1_PREFIX)
router.include_router(notifications.router, prefix=API_V1_PREFIX)
