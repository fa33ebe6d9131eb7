"""REST API endpoints for team timelines.

Events are stored per team. Listing applies the view filters (period,
search) and the pinned-first ordering; the seasons view groups the same
events by football season (August to May).
"""

from __future__ import annotations

import uuid
from datetime import date
from typing import Any

from fastapi import APIRouter, Depends, HTTPException, Query, Request, status
from pydantic import BaseModel, Field

from src.app.api.deps import get_optional_actor_id, get_tenant
from src.app.core.tenant import TenantContext
from src.app.timeline.schemas import (
    TimelineEventCreate,
    TimelineEventRead,
    TimelineEventType,
    TimelineFilter,
    TimelinePeriod,
)
from src.app.timeline.seasons import filter_events, group_by_season, sort_events

router = APIRouter(prefix="/timeline", tags=["timeline"])


# ── Schemas ──────────────────────────────────────────────────────────────────


class TimelineEventResponse(BaseModel):
    """Response for timeline event data, serializes dates to ISO strings."""

    id: str
    tenant_id: str
    team_id: str
    event_type: str
    title: str
    description: str | None = None
    event_date: str
    player_id: str | None = None
    contract_id: str | None = None
    is_pinned: bool = False
    metadata: dict[str, Any] = Field(default_factory=dict)
    created_by: str | None = None
    created_at: str | None = None
    updated_at: str | None = None


class SeasonResponse(BaseModel):
    season: str
    events: list[TimelineEventResponse] = Field(default_factory=list)


class CreateTimelineEventRequest(BaseModel):
    """Request body for recording an event. Achievements are always pinned."""

    team_id: str
    event_type: TimelineEventType
    title: str = Field(min_length=1, max_length=300)
    description: str | None = None
    event_date: date
    player_id: str | None = None
    contract_id: str | None = None
    is_pinned: bool = False
    metadata: dict[str, Any] = Field(default_factory=dict)


# ── Helpers ──────────────────────────────────────────────────────────────────


def _get_timeline_repository(request: Request) -> Any:
    """Retrieve TimelineRepository from app.state, 503 if not available."""
    repo = getattr(request.app.state, "timeline_repository", None)
    if repo is None:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Timeline not initialized",
        )
    return repo


def _require_uuid(value: str | None, field: str) -> None:
    if value is None:
        return
    try:
        uuid.UUID(value)
    except ValueError:
        raise HTTPException(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            detail={"code": "precondition_violation", "message": f"{field} must be a valid UUID"},
        )


def _event_to_response(event: TimelineEventRead) -> TimelineEventResponse:
    return TimelineEventResponse(
        id=event.id,
        tenant_id=event.tenant_id,
        team_id=event.team_id,
        event_type=event.event_type.value,
        title=event.title,
        description=event.description,
        event_date=event.event_date.isoformat(),
        player_id=event.player_id,
        contract_id=event.contract_id,
        is_pinned=event.is_pinned,
        metadata=event.metadata,
        created_by=event.created_by,
        created_at=event.created_at.isoformat() if event.created_at else None,
        updated_at=event.updated_at.isoformat() if event.updated_at else None,
    )


async def _load_filtered(
    repo: Any,
    tenant_id: str,
    team_id: str | None,
    event_type: TimelineEventType | None,
    period: TimelinePeriod | None,
    player_id: str | None,
    search: str | None,
) -> list[TimelineEventRead]:
    _require_uuid(team_id, "team_id")
    _require_uuid(player_id, "player_id")
    events = await repo.list_events(
        tenant_id,
        TimelineFilter(team_id=team_id, event_type=event_type, player_id=player_id),
    )
    return filter_events(events, period=period, search=search)


# ── Endpoints ────────────────────────────────────────────────────────────────


@router.post("/events", response_model=TimelineEventResponse, status_code=201)
async def create_event(
    body: CreateTimelineEventRequest,
    request: Request,
    actor_id: str | None = Depends(get_optional_actor_id),
    tenant: TenantContext = Depends(get_tenant),
) -> TimelineEventResponse:
    """Record an event on a team's timeline."""
    repo = _get_timeline_repository(request)
    _require_uuid(body.team_id, "team_id")
    _require_uuid(body.player_id, "player_id")
    _require_uuid(body.contract_id, "contract_id")

    data = TimelineEventCreate(
        team_id=body.team_id,
        event_type=body.event_type,
        title=body.title,
        description=body.description,
        event_date=body.event_date,
        player_id=body.player_id,
        contract_id=body.contract_id,
        is_pinned=body.is_pinned,
        metadata=body.metadata,
        created_by=actor_id,
    )
    event = await repo.create_event(tenant.tenant_id, data)
    return _event_to_response(event)


@router.get("/events", response_model=list[TimelineEventResponse])
async def list_events(
    request: Request,
    team_id: str | None = Query(default=None),
    event_type: TimelineEventType | None = Query(default=None),
    period: TimelinePeriod | None = Query(default=None),
    player_id: str | None = Query(default=None),
    search: str | None = Query(default=None),
    tenant: TenantContext = Depends(get_tenant),
) -> list[TimelineEventResponse]:
    """List events, pinned first then newest first."""
    repo = _get_timeline_repository(request)
    events = await _load_filtered(
        repo, tenant.tenant_id, team_id, event_type, period, player_id, search
    )
    return [_event_to_response(e) for e in sort_events(events)]


@router.get("/seasons", response_model=list[SeasonResponse])
async def list_seasons(
    request: Request,
    team_id: str | None = Query(default=None),
    event_type: TimelineEventType | None = Query(default=None),
    player_id: str | None = Query(default=None),
    search: str | None = Query(default=None),
    tenant: TenantContext = Depends(get_tenant),
) -> list[SeasonResponse]:
    """Events grouped by season, newest season first."""
    repo = _get_timeline_repository(request)
    events = await _load_filtered(
        repo, tenant.tenant_id, team_id, event_type, None, player_id, search
    )
    return [
        SeasonResponse(season=season, events=[_event_to_response(e) for e in bucket])
        for season, bucket in group_by_season(events).items()
    ]


@router.get("/events/{event_id}", response_model=TimelineEventResponse)
async def get_event(
    event_id: str,
    request: Request,
    tenant: TenantContext = Depends(get_tenant),
) -> TimelineEventResponse:
    """Get a single timeline event by ID."""
    repo = _get_timeline_repository(request)
    event = None
    try:
        uuid.UUID(event_id)
    except ValueError:
        pass
    else:
        event = await repo.get_event(tenant.tenant_id, event_id)
    if event is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail={"code": "not_found", "message": f"Timeline event not found: {event_id}"},
        )
    return _event_to_response(event)


@router.post("/events/{event_id}/pin", response_model=TimelineEventResponse)
async def toggle_pin(
    event_id: str,
    request: Request,
    tenant: TenantContext = Depends(get_tenant),
) -> TimelineEventResponse:
    """Pin or unpin an event."""
    repo = _get_timeline_repository(request)
    try:
        event = await repo.toggle_pin(tenant.tenant_id, event_id)
    except ValueError:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail={"code": "not_found", "message": f"Timeline event not found: {event_id}"},
        )
    return _event_to_response(event)
