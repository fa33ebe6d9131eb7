"""Integration tests for the timeline API endpoints.

Uses InMemoryTimelineRepository from conftest and httpx AsyncClient with a
tenant dependency override.
"""

from __future__ import annotations

import uuid

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient

from src.app.core.tenant import TenantContext


def _make_mock_app():
    from fastapi import FastAPI

    from src.app.api.v1.timeline import router

    app = FastAPI()
    app.include_router(router, prefix="/v1")
    return app


@pytest_asyncio.fixture
async def client_and_repo(timeline_repo, tenant_id):
    """Create test client with InMemoryTimelineRepository."""
    from src.app.api.deps import get_tenant

    app = _make_mock_app()
    app.dependency_overrides[get_tenant] = lambda: TenantContext(
        tenant_id=tenant_id, tenant_slug="riverside-fc", schema_name="tenant_riverside_fc"
    )
    app.state.timeline_repository = timeline_repo

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        yield client, timeline_repo


async def _post_event(client: AsyncClient, team_id: str, **overrides) -> dict:
    body = {
        "team_id": team_id,
        "event_type": "match",
        "title": "Cup semi-final",
        "event_date": "2024-03-10",
    }
    body.update(overrides)
    response = await client.post("/v1/timeline/events", json=body)
    assert response.status_code == 201
    return response.json()


@pytest.mark.asyncio
async def test_create_event_records_actor(client_and_repo, team_id):
    client, _ = client_and_repo
    actor = str(uuid.uuid4())
    response = await client.post(
        "/v1/timeline/events",
        json={
            "team_id": team_id,
            "event_type": "player",
            "title": "New captain",
            "event_date": "2024-02-01",
        },
        headers={"X-Profile-ID": actor},
    )
    assert response.status_code == 201
    data = response.json()
    assert data["created_by"] == actor
    assert data["event_date"] == "2024-02-01"
    assert data["is_pinned"] is False


@pytest.mark.asyncio
async def test_achievements_are_pinned(client_and_repo, team_id):
    client, _ = client_and_repo
    event = await _post_event(client, team_id, event_type="achievement", title="League title")
    assert event["is_pinned"] is True


@pytest.mark.asyncio
async def test_create_event_rejects_bad_team_id(client_and_repo):
    client, _ = client_and_repo
    response = await client.post(
        "/v1/timeline/events",
        json={"team_id": "team-1", "event_type": "match", "title": "x", "event_date": "2024-01-01"},
    )
    assert response.status_code == 422


@pytest.mark.asyncio
async def test_list_events_pinned_first(client_and_repo, team_id):
    client, _ = client_and_repo
    await _post_event(client, team_id, title="Older trophy", event_type="achievement", event_date="2021-05-20")
    await _post_event(client, team_id, title="Latest match", event_date="2024-04-01")
    await _post_event(client, team_id, title="Earlier match", event_date="2024-01-01")

    response = await client.get("/v1/timeline/events", params={"team_id": team_id})
    assert response.status_code == 200
    assert [e["title"] for e in response.json()] == ["Older trophy", "Latest match", "Earlier match"]


@pytest.mark.asyncio
async def test_list_events_search_and_type(client_and_repo, team_id):
    client, _ = client_and_repo
    await _post_event(client, team_id, title="Striker signed", event_type="transfer")
    await _post_event(client, team_id, title="Derby")

    response = await client.get("/v1/timeline/events", params={"event_type": "transfer"})
    assert [e["title"] for e in response.json()] == ["Striker signed"]

    response = await client.get("/v1/timeline/events", params={"search": "DERBY"})
    assert [e["title"] for e in response.json()] == ["Derby"]


@pytest.mark.asyncio
async def test_seasons_endpoint(client_and_repo, team_id):
    client, _ = client_and_repo
    await _post_event(client, team_id, title="Opening day", event_date="2023-08-12")
    await _post_event(client, team_id, title="Season finale", event_date="2023-05-28")

    response = await client.get("/v1/timeline/seasons", params={"team_id": team_id})
    assert response.status_code == 200
    seasons = response.json()
    assert [s["season"] for s in seasons] == ["2023/2024", "2022/2023"]
    assert seasons[0]["events"][0]["title"] == "Opening day"


@pytest.mark.asyncio
async def test_get_event_and_not_found(client_and_repo, team_id):
    client, _ = client_and_repo
    event = await _post_event(client, team_id)

    response = await client.get(f"/v1/timeline/events/{event['id']}")
    assert response.status_code == 200

    response = await client.get(f"/v1/timeline/events/{uuid.uuid4()}")
    assert response.status_code == 404

    response = await client.get("/v1/timeline/events/not-a-uuid")
    assert response.status_code == 404


@pytest.mark.asyncio
async def test_toggle_pin(client_and_repo, team_id):
    client, repo = client_and_repo
    event = await _post_event(client, team_id)

    response = await client.post(f"/v1/timeline/events/{event['id']}/pin")
    assert response.status_code == 200
    assert response.json()["is_pinned"] is True
    assert repo.events[event["id"]].is_pinned is True

    response = await client.post(f"/v1/timeline/events/{uuid.uuid4()}/pin")
    assert response.status_code == 404


@pytest.mark.asyncio
async def test_completed_contract_appears_on_timeline(client_and_repo, driver, team_id):
    client, _ = client_and_repo
    contract = await driver.completed()

    response = await client.get(
        "/v1/timeline/events", params={"team_id": team_id, "event_type": "transfer"}
    )
    events = response.json()
    assert len(events) == 1
    assert events[0]["contract_id"] == contract.id
    assert events[0]["title"] == "Transfer completed"


@pytest.mark.asyncio
async def test_timeline_api_503_when_not_initialized(tenant_id):
    from src.app.api.deps import get_tenant

    app = _make_mock_app()
    app.dependency_overrides[get_tenant] = lambda: TenantContext(
        tenant_id=tenant_id, tenant_slug="riverside-fc", schema_name="tenant_riverside_fc"
    )
    app.state.timeline_repository = None

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        response = await client.get("/v1/timeline/events")
        assert response.status_code == 503
