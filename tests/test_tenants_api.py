"""Tests for tenant provisioning endpoints with the provisioning service patched out."""

from __future__ import annotations

import uuid
from datetime import datetime, timezone
from unittest.mock import AsyncMock, patch

import pytest
from httpx import ASGITransport, AsyncClient

from src.app.models.shared import Tenant

TENANT = {
    "id": str(uuid.uuid4()),
    "slug": "northbank-agency",
    "name": "Northbank Agency",
    "kind": "agency",
    "schema_name": "tenant_northbank_agency",
    "is_active": True,
    "created_at": datetime(2026, 1, 5, tzinfo=timezone.utc),
}


def _make_mock_app():
    from fastapi import FastAPI

    from src.app.api.v1.tenants import router

    app = FastAPI()
    app.include_router(router)
    return app


async def _request(method: str, path: str, **kwargs):
    transport = ASGITransport(app=_make_mock_app())
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        return await client.request(method, path, **kwargs)


@pytest.mark.asyncio
async def test_create_tenant_passes_kind():
    with patch(
        "src.app.api.v1.tenants.provision_tenant", AsyncMock(return_value=TENANT)
    ) as provision:
        response = await _request(
            "POST",
            "/api/v1/tenants",
            json={"slug": "northbank-agency", "name": "Northbank Agency", "kind": "agency"},
        )

    assert response.status_code == 201
    assert response.json()["kind"] == "agency"
    assert provision.await_args.kwargs["kind"].value == "agency"


@pytest.mark.asyncio
async def test_create_tenant_rejects_bad_slug():
    response = await _request("POST", "/api/v1/tenants", json={"slug": "Bad Slug", "name": "x"})
    assert response.status_code == 422


@pytest.mark.asyncio
async def test_list_and_lookup_by_slug():
    with patch("src.app.api.v1.tenants.list_tenants", AsyncMock(return_value=[TENANT])):
        response = await _request("GET", "/api/v1/tenants")
    assert [t["slug"] for t in response.json()] == ["northbank-agency"]

    with patch("src.app.api.v1.tenants.get_tenant_by_slug", AsyncMock(return_value=TENANT)):
        response = await _request("GET", "/api/v1/tenants/northbank-agency")
    assert response.status_code == 200
    assert response.json()["id"] == TENANT["id"]


@pytest.mark.asyncio
async def test_lookup_unknown_slug_404():
    with patch("src.app.api.v1.tenants.get_tenant_by_slug", AsyncMock(return_value=None)):
        response = await _request("GET", "/api/v1/tenants/ghost-fc")
    assert response.status_code == 404
    assert response.json()["detail"]["code"] == "not_found"


def test_tenant_model_kind_defaults_to_club():
    assert Tenant(slug="a-b", name="A", schema_name="tenant_a_b").kind == "club"
    assert Tenant(slug="c-d", name="C", schema_name="tenant_c_d", config={"kind": "federation"}).kind == "federation"
