"""Tests for NotificationService delivery and the notifications API."""

from __future__ import annotations

import uuid
from unittest.mock import AsyncMock

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient

from src.app.core.tenant import TenantContext
from src.app.notifications.service import NotificationKind, NotificationService


# ── NotificationService ─────────────────────────────────────────────────────


@pytest.mark.asyncio
async def test_notify_persists(notification_repo, tenant_id):
    recipient = str(uuid.uuid4())
    service = NotificationService(notification_repo)

    await service.notify(
        tenant_id, recipient, NotificationKind.CONTRACT_SENT, "New contract", "Have a look",
        {"contract_id": "c-1"},
    )

    stored = await notification_repo.list_for_recipient(tenant_id, recipient)
    assert len(stored) == 1
    assert stored[0].kind == NotificationKind.CONTRACT_SENT
    assert stored[0].data == {"contract_id": "c-1"}
    assert stored[0].is_read is False


@pytest.mark.asyncio
async def test_notify_without_recipient_is_skipped(notification_repo, tenant_id):
    service = NotificationService(notification_repo)
    await service.notify(tenant_id, None, NotificationKind.CONTRACT_EXPIRED, "Expired")
    assert notification_repo.notifications == {}


@pytest.mark.asyncio
async def test_notify_never_raises(tenant_id):
    repo = AsyncMock()
    repo.create.side_effect = RuntimeError("database unavailable")
    service = NotificationService(repo)

    await service.notify(tenant_id, str(uuid.uuid4()), NotificationKind.SYSTEM, "Hello")
    repo.create.assert_awaited_once()


@pytest.mark.asyncio
async def test_notify_without_repository_only_logs(tenant_id):
    await NotificationService().notify(tenant_id, str(uuid.uuid4()), NotificationKind.SYSTEM, "Hi")


# ── API ─────────────────────────────────────────────────────────────────────


def _make_mock_app():
    from fastapi import FastAPI

    from src.app.api.v1.notifications import router

    app = FastAPI()
    app.include_router(router, prefix="/v1")
    return app


@pytest_asyncio.fixture
async def client(notification_repo, tenant_id):
    from src.app.api.deps import get_tenant

    app = _make_mock_app()
    app.dependency_overrides[get_tenant] = lambda: TenantContext(
        tenant_id=tenant_id, tenant_slug="riverside-fc", schema_name="tenant_riverside_fc"
    )
    app.state.notification_repository = notification_repo

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        yield client


@pytest.mark.asyncio
async def test_list_defaults_to_caller_and_mark_read(client, notification_repo, tenant_id):
    me = str(uuid.uuid4())
    service = NotificationService(notification_repo)
    await service.notify(tenant_id, me, NotificationKind.CONTRACT_SIGNED, "Agent signed")
    await service.notify(tenant_id, str(uuid.uuid4()), NotificationKind.SYSTEM, "Not mine")

    response = await client.get("/v1/notifications", headers={"X-Profile-ID": me})
    assert response.status_code == 200
    items = response.json()
    assert [n["title"] for n in items] == ["Agent signed"]
    assert items[0]["kind"] == "contract_signed"

    response = await client.post(f"/v1/notifications/{items[0]['id']}/read")
    assert response.status_code == 200
    assert response.json()["is_read"] is True

    response = await client.get(
        "/v1/notifications", params={"unread_only": "true"}, headers={"X-Profile-ID": me}
    )
    assert response.json() == []


@pytest.mark.asyncio
async def test_list_requires_actor(client):
    response = await client.get("/v1/notifications")
    assert response.status_code == 401


@pytest.mark.asyncio
async def test_list_rejects_malformed_recipient(client):
    response = await client.get(
        "/v1/notifications",
        params={"recipient_id": "agent-1"},
        headers={"X-Profile-ID": str(uuid.uuid4())},
    )
    assert response.status_code == 422


@pytest.mark.asyncio
async def test_mark_read_not_found(client):
    response = await client.post(f"/v1/notifications/{uuid.uuid4()}/read")
    assert response.status_code == 404
