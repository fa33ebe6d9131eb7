"""REST API endpoints for transfer pitches (listings contracts are opened on)."""

from __future__ import annotations

from datetime import datetime
from typing import Any

from fastapi import APIRouter, Depends, HTTPException, Query, Request, status
from pydantic import BaseModel, Field

from src.app.api.deps import get_actor_id, get_tenant
from src.app.api.errors import to_http_error
from src.app.contracts.errors import ContractWorkflowError
from src.app.contracts.schemas import (
    PitchCreate,
    PitchFilter,
    PitchRead,
    PitchStatus,
    TransferType,
)
from src.app.core.tenant import TenantContext

router = APIRouter(prefix="/pitches", tags=["pitches"])


class PitchResponse(BaseModel):
    """Response for pitch data, serializes datetimes to ISO strings."""

    id: str
    tenant_id: str
    team_id: str
    player_id: str | None = None
    transfer_type: str = "permanent"
    asking_price: float | None = None
    currency: str = "USD"
    status: str = "active"
    deal_stage: str = "open"
    description: str | None = None
    contract_finalized: bool = False
    contract_finalized_at: str | None = None
    expires_at: str | None = None
    created_at: str | None = None
    updated_at: str | None = None


class CreatePitchRequest(BaseModel):
    """Request body for publishing a pitch. team_id defaults to the caller."""

    team_id: str | None = None
    player_id: str | None = None
    transfer_type: TransferType = TransferType.PERMANENT
    asking_price: float | None = Field(default=None, ge=0)
    currency: str = Field(default="USD", min_length=3, max_length=3)
    description: str | None = None
    expires_at: datetime | None = None


def _get_contract_workflow(request: Request) -> Any:
    """Retrieve ContractWorkflow from app.state, 503 if not available."""
    workflow = getattr(request.app.state, "contract_workflow", None)
    if workflow is None:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Contract workflow not initialized",
        )
    return workflow


def _pitch_to_response(pitch: PitchRead) -> PitchResponse:
    return PitchResponse(
        id=pitch.id,
        tenant_id=pitch.tenant_id,
        team_id=pitch.team_id,
        player_id=pitch.player_id,
        transfer_type=pitch.transfer_type.value,
        asking_price=pitch.asking_price,
        currency=pitch.currency,
        status=pitch.status.value,
        deal_stage=pitch.deal_stage.value,
        description=pitch.description,
        contract_finalized=pitch.contract_finalized,
        contract_finalized_at=(
            pitch.contract_finalized_at.isoformat() if pitch.contract_finalized_at else None
        ),
        expires_at=pitch.expires_at.isoformat() if pitch.expires_at else None,
        created_at=pitch.created_at.isoformat() if pitch.created_at else None,
        updated_at=pitch.updated_at.isoformat() if pitch.updated_at else None,
    )


@router.post("", response_model=PitchResponse, status_code=201)
async def create_pitch(
    body: CreatePitchRequest,
    request: Request,
    actor_id: str = Depends(get_actor_id),
    tenant: TenantContext = Depends(get_tenant),
) -> PitchResponse:
    """Publish a transfer pitch."""
    workflow = _get_contract_workflow(request)
    data = PitchCreate(
        team_id=body.team_id or actor_id,
        player_id=body.player_id,
        transfer_type=body.transfer_type,
        asking_price=body.asking_price,
        currency=body.currency.upper(),
        description=body.description,
        expires_at=body.expires_at,
    )
    try:
        pitch = await workflow.create_pitch(tenant.tenant_id, data)
    except ContractWorkflowError as exc:
        raise to_http_error(exc) from exc
    return _pitch_to_response(pitch)


@router.get("", response_model=list[PitchResponse])
async def list_pitches(
    request: Request,
    team_id: str | None = Query(default=None),
    pitch_status: PitchStatus | None = Query(default=None, alias="status"),
    tenant: TenantContext = Depends(get_tenant),
) -> list[PitchResponse]:
    """List pitches, optionally by team and status."""
    workflow = _get_contract_workflow(request)
    try:
        pitches = await workflow.list_pitches(
            tenant.tenant_id, PitchFilter(team_id=team_id, status=pitch_status)
        )
    except ContractWorkflowError as exc:
        raise to_http_error(exc) from exc
    return [_pitch_to_response(p) for p in pitches]


@router.get("/{pitch_id}", response_model=PitchResponse)
async def get_pitch(
    pitch_id: str,
    request: Request,
    tenant: TenantContext = Depends(get_tenant),
) -> PitchResponse:
    """Get a single pitch by ID."""
    workflow = _get_contract_workflow(request)
    try:
        pitch = await workflow.get_pitch(tenant.tenant_id, pitch_id)
    except ContractWorkflowError as exc:
        raise to_http_error(exc) from exc
    return _pitch_to_response(pitch)
