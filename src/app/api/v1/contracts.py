"""REST API endpoints for contract negotiation.

Provides contract creation, listing, pipeline view, history and progress
reads, the negotiation thread, and the workflow actions (send, revise
terms, advance, review, sign, expire).
All endpoints require tenant context; actor-checked actions also require
the X-Profile-ID header.

Workflow errors are returned as ``{"detail": {"code", "message"}}`` with a
status per error class (404 not found, 409 illegal transition, 422
precondition, 502 upstream failure).
"""

from __future__ import annotations

from datetime import datetime
from typing import Any

from fastapi import APIRouter, Depends, HTTPException, Query, Request, status
from pydantic import BaseModel, Field

from src.app.api.deps import get_actor_id, get_optional_actor_id, get_tenant
from src.app.api.errors import to_http_error
from src.app.contracts.errors import ContractWorkflowError, PreconditionViolationError
from src.app.contracts.schemas import (
    ContractCreate,
    ContractFilter,
    ContractMessageCreate,
    ContractMessageRead,
    ContractMessageType,
    ContractPriority,
    ContractRead,
    ContractTerms,
    ContractTermsUpdate,
    PlainTextTerms,
    WorkflowStepRead,
)
from src.app.contracts.stages import ContractStage, ContractStatus, ReviewAction, SigningParty
from src.app.core.tenant import TenantContext
from src.app.storage.signatures import decode_signature_image

router = APIRouter(prefix="/contracts", tags=["contracts"])


# ── Response Schemas ─────────────────────────────────────────────────────────


class ContractResponse(BaseModel):
    """Response for contract data, serializes datetimes to ISO strings."""

    id: str
    tenant_id: str
    pitch_id: str
    team_id: str
    agent_id: str | None = None
    player_id: str | None = None
    contract_value: float | None = None
    currency: str = "USD"
    terms: dict[str, Any] = Field(default_factory=dict)
    deal_stage: str = "draft"
    status: str = "draft"
    signatures: dict[str, Any] = Field(default_factory=dict)
    financial_summary: dict[str, Any] | None = None
    priority: str = "medium"
    negotiation_rounds: int = 0
    version: int = 1
    response_deadline: str | None = None
    expires_at: str | None = None
    created_by: str | None = None
    last_activity_at: str | None = None
    created_at: str | None = None
    updated_at: str | None = None


class WorkflowStepResponse(BaseModel):
    id: str
    contract_id: str
    step_type: str
    from_stage: str | None = None
    to_stage: str | None = None
    actor_id: str | None = None
    notes: str | None = None
    created_at: str | None = None


class MessageResponse(BaseModel):
    id: str
    contract_id: str
    sender_id: str
    content: str
    message_type: str
    related_field: str | None = None
    created_at: str | None = None


class ProgressResponse(BaseModel):
    """Position on the stage path and the legal next moves."""

    contract_id: str
    deal_stage: str
    status: str
    position: int | None = None
    total_stages: int
    can_advance: bool = False
    next_stage: str | None = None
    legal_actions: list[str] = Field(default_factory=list)
    is_terminal: bool = False


class PipelineResponse(BaseModel):
    """Pipeline view grouping contracts by stage."""

    stages: dict[str, list[ContractResponse]] = Field(default_factory=dict)
    stage_counts: dict[str, int] = Field(default_factory=dict)
    total_contracts: int = 0
    total_value: float = 0.0
    success_rate: float = 0.0
    recent_activity: list[ContractResponse] = Field(default_factory=list)


class ExpirySweepResponse(BaseModel):
    expired_count: int = 0
    expired: list[ContractResponse] = Field(default_factory=list)


# ── Request Schemas ──────────────────────────────────────────────────────────


class CreateContractRequest(BaseModel):
    """Request body for opening a contract on a pitch.

    team_id defaults to the caller's profile; value and currency default to
    the pitch's asking price and currency.
    """

    pitch_id: str
    team_id: str | None = None
    contract_value: float | None = Field(default=None, ge=0)
    currency: str | None = Field(default=None, min_length=3, max_length=3)
    terms: ContractTerms = Field(default_factory=PlainTextTerms)
    priority: ContractPriority = ContractPriority.MEDIUM
    expires_at: datetime | None = None


class SendContractRequest(BaseModel):
    agent_id: str
    message: str | None = None


class UpdateTermsRequest(BaseModel):
    """Revised offer. At least one of terms, contract_value or currency."""

    terms: ContractTerms | None = None
    contract_value: float | None = Field(default=None, ge=0)
    currency: str | None = Field(default=None, min_length=3, max_length=3)
    note: str | None = None


class PostMessageRequest(BaseModel):
    content: str = Field(..., min_length=1, max_length=5000)
    message_type: ContractMessageType = ContractMessageType.DISCUSSION
    related_field: str | None = Field(default=None, max_length=100)


class AdvanceStageRequest(BaseModel):
    """Request body for a stage change. Unknown stage names are rejected as illegal."""

    target_stage: str
    note: str | None = None


class ReviewContractRequest(BaseModel):
    action: ReviewAction
    note: str | None = None


class SignContractRequest(BaseModel):
    """Request body for signing.

    signature_image is optional: a ``data:image/...;base64,`` URL or bare
    base64 (PNG assumed).
    """

    party: SigningParty
    signature_image: str | None = None


class ExpireContractRequest(BaseModel):
    reason: str | None = None


# ── Dependency Helpers ───────────────────────────────────────────────────────


def _get_contract_workflow(request: Request) -> Any:
    """Retrieve ContractWorkflow from app.state, 503 if not available."""
    workflow = getattr(request.app.state, "contract_workflow", None)
    if workflow is None:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Contract workflow not initialized",
        )
    return workflow


# ── Conversion Helpers ───────────────────────────────────────────────────────


def _iso(value: datetime | None) -> str | None:
    return value.isoformat() if value else None


def _contract_to_response(contract: ContractRead) -> ContractResponse:
    """Convert ContractRead to ContractResponse."""
    return ContractResponse(
        id=contract.id,
        tenant_id=contract.tenant_id,
        pitch_id=contract.pitch_id,
        team_id=contract.team_id,
        agent_id=contract.agent_id,
        player_id=contract.player_id,
        contract_value=contract.contract_value,
        currency=contract.currency,
        terms=contract.terms.model_dump(),
        deal_stage=contract.deal_stage.value,
        status=contract.status.value,
        signatures=contract.signatures.model_dump(mode="json"),
        financial_summary=(
            contract.financial_summary.model_dump(mode="json")
            if contract.financial_summary
            else None
        ),
        priority=contract.priority.value,
        negotiation_rounds=contract.negotiation_rounds,
        version=contract.version,
        response_deadline=_iso(contract.response_deadline),
        expires_at=_iso(contract.expires_at),
        created_by=contract.created_by,
        last_activity_at=_iso(contract.last_activity_at),
        created_at=_iso(contract.created_at),
        updated_at=_iso(contract.updated_at),
    )


def _step_to_response(step: WorkflowStepRead) -> WorkflowStepResponse:
    return WorkflowStepResponse(
        id=step.id,
        contract_id=step.contract_id,
        step_type=step.step_type.value,
        from_stage=step.from_stage.value if step.from_stage else None,
        to_stage=step.to_stage.value if step.to_stage else None,
        actor_id=step.actor_id,
        notes=step.notes,
        created_at=_iso(step.created_at),
    )


def _message_to_response(message: ContractMessageRead) -> MessageResponse:
    return MessageResponse(
        id=message.id,
        contract_id=message.contract_id,
        sender_id=message.sender_id,
        content=message.content,
        message_type=message.message_type.value,
        related_field=message.related_field,
        created_at=_iso(message.created_at),
    )


# ── Contract Endpoints ───────────────────────────────────────────────────────


@router.post("", response_model=ContractResponse, status_code=201)
async def create_contract(
    body: CreateContractRequest,
    request: Request,
    actor_id: str = Depends(get_actor_id),
    tenant: TenantContext = Depends(get_tenant),
) -> ContractResponse:
    """Open a draft contract on an active pitch."""
    workflow = _get_contract_workflow(request)
    data = ContractCreate(
        pitch_id=body.pitch_id,
        team_id=body.team_id or actor_id,
        contract_value=body.contract_value,
        currency=body.currency,
        terms=body.terms,
        priority=body.priority,
        expires_at=body.expires_at,
        created_by=actor_id,
    )
    try:
        contract = await workflow.create_contract(tenant.tenant_id, data)
    except ContractWorkflowError as exc:
        raise to_http_error(exc) from exc
    return _contract_to_response(contract)


@router.get("", response_model=list[ContractResponse])
async def list_contracts(
    request: Request,
    contract_status: ContractStatus | None = Query(default=None, alias="status"),
    deal_stage: ContractStage | None = Query(default=None),
    team_id: str | None = Query(default=None),
    agent_id: str | None = Query(default=None),
    pitch_id: str | None = Query(default=None),
    priority: ContractPriority | None = Query(default=None),
    date_from: datetime | None = Query(default=None),
    date_to: datetime | None = Query(default=None),
    tenant: TenantContext = Depends(get_tenant),
) -> list[ContractResponse]:
    """List contracts with optional filters, most recently active first."""
    workflow = _get_contract_workflow(request)
    filters = ContractFilter(
        status=contract_status,
        deal_stage=deal_stage,
        team_id=team_id,
        agent_id=agent_id,
        pitch_id=pitch_id,
        priority=priority,
        date_from=date_from,
        date_to=date_to,
    )
    try:
        contracts = await workflow.list_contracts(tenant.tenant_id, filters)
    except ContractWorkflowError as exc:
        raise to_http_error(exc) from exc
    return [_contract_to_response(c) for c in contracts]


@router.get("/pipeline", response_model=PipelineResponse)
async def get_pipeline(
    request: Request,
    team_id: str | None = Query(default=None),
    agent_id: str | None = Query(default=None),
    tenant: TenantContext = Depends(get_tenant),
) -> PipelineResponse:
    """Pipeline view: contracts grouped by stage with value and success rate."""
    workflow = _get_contract_workflow(request)
    try:
        pipeline = await workflow.get_pipeline(
            tenant.tenant_id, ContractFilter(team_id=team_id, agent_id=agent_id)
        )
    except ContractWorkflowError as exc:
        raise to_http_error(exc) from exc
    return PipelineResponse(
        stages={
            stage: [_contract_to_response(c) for c in contracts]
            for stage, contracts in pipeline.stages.items()
        },
        stage_counts=pipeline.stage_counts,
        total_contracts=pipeline.total_contracts,
        total_value=pipeline.total_value,
        success_rate=pipeline.success_rate,
        recent_activity=[_contract_to_response(c) for c in pipeline.recent_activity],
    )


@router.post("/expire-overdue", response_model=ExpirySweepResponse)
async def expire_overdue(
    request: Request,
    tenant: TenantContext = Depends(get_tenant),
) -> ExpirySweepResponse:
    """Expire every contract past its expiry date or response deadline."""
    workflow = _get_contract_workflow(request)
    try:
        expired = await workflow.expire_overdue(tenant.tenant_id)
    except ContractWorkflowError as exc:
        raise to_http_error(exc) from exc
    return ExpirySweepResponse(
        expired_count=len(expired),
        expired=[_contract_to_response(c) for c in expired],
    )


@router.get("/{contract_id}", response_model=ContractResponse)
async def get_contract(
    contract_id: str,
    request: Request,
    tenant: TenantContext = Depends(get_tenant),
) -> ContractResponse:
    """Get a single contract by ID."""
    workflow = _get_contract_workflow(request)
    try:
        contract = await workflow.get_contract(tenant.tenant_id, contract_id)
    except ContractWorkflowError as exc:
        raise to_http_error(exc) from exc
    return _contract_to_response(contract)


@router.get("/{contract_id}/history", response_model=list[WorkflowStepResponse])
async def get_history(
    contract_id: str,
    request: Request,
    tenant: TenantContext = Depends(get_tenant),
) -> list[WorkflowStepResponse]:
    """Workflow history of a contract, oldest first."""
    workflow = _get_contract_workflow(request)
    try:
        steps = await workflow.get_history(tenant.tenant_id, contract_id)
    except ContractWorkflowError as exc:
        raise to_http_error(exc) from exc
    return [_step_to_response(s) for s in steps]


@router.get("/{contract_id}/progress", response_model=ProgressResponse)
async def get_progress(
    contract_id: str,
    request: Request,
    tenant: TenantContext = Depends(get_tenant),
) -> ProgressResponse:
    """Where the contract sits on the stage path and what it can do next."""
    workflow = _get_contract_workflow(request)
    try:
        progress = await workflow.get_progress(tenant.tenant_id, contract_id)
    except ContractWorkflowError as exc:
        raise to_http_error(exc) from exc
    return ProgressResponse(
        contract_id=progress.contract_id,
        deal_stage=progress.deal_stage.value,
        status=progress.status.value,
        position=progress.position,
        total_stages=progress.total_stages,
        can_advance=progress.can_advance,
        next_stage=progress.next_stage.value if progress.next_stage else None,
        legal_actions=[s.value for s in progress.legal_actions],
        is_terminal=progress.is_terminal,
    )


# ── Workflow Actions ─────────────────────────────────────────────────────────


@router.post("/{contract_id}/send", response_model=ContractResponse)
async def send_to_agent(
    contract_id: str,
    body: SendContractRequest,
    request: Request,
    actor_id: str = Depends(get_actor_id),
    tenant: TenantContext = Depends(get_tenant),
) -> ContractResponse:
    """Send a draft contract to an agent (creating team only)."""
    workflow = _get_contract_workflow(request)
    try:
        contract = await workflow.send_to_agent(
            tenant.tenant_id, contract_id, actor_id, body.agent_id, body.message
        )
    except ContractWorkflowError as exc:
        raise to_http_error(exc) from exc
    return _contract_to_response(contract)


@router.patch("/{contract_id}/terms", response_model=ContractResponse)
async def update_terms(
    contract_id: str,
    body: UpdateTermsRequest,
    request: Request,
    actor_id: str = Depends(get_actor_id),
    tenant: TenantContext = Depends(get_tenant),
) -> ContractResponse:
    """Revise terms, value or currency (creating team, draft or negotiating only)."""
    workflow = _get_contract_workflow(request)
    try:
        contract = await workflow.update_terms(
            tenant.tenant_id,
            contract_id,
            actor_id,
            ContractTermsUpdate(**body.model_dump(exclude_unset=True)),
        )
    except ContractWorkflowError as exc:
        raise to_http_error(exc) from exc
    return _contract_to_response(contract)


@router.get("/{contract_id}/messages", response_model=list[MessageResponse])
async def list_messages(
    contract_id: str,
    request: Request,
    tenant: TenantContext = Depends(get_tenant),
) -> list[MessageResponse]:
    """Negotiation thread, oldest first."""
    workflow = _get_contract_workflow(request)
    try:
        messages = await workflow.list_messages(tenant.tenant_id, contract_id)
    except ContractWorkflowError as exc:
        raise to_http_error(exc) from exc
    return [_message_to_response(m) for m in messages]


@router.post("/{contract_id}/messages", response_model=MessageResponse, status_code=201)
async def post_message(
    contract_id: str,
    body: PostMessageRequest,
    request: Request,
    actor_id: str = Depends(get_actor_id),
    tenant: TenantContext = Depends(get_tenant),
) -> MessageResponse:
    """Post to the negotiation thread (creating team or assigned agent)."""
    workflow = _get_contract_workflow(request)
    try:
        message = await workflow.post_message(
            tenant.tenant_id,
            contract_id,
            actor_id,
            ContractMessageCreate(**body.model_dump()),
        )
    except ContractWorkflowError as exc:
        raise to_http_error(exc) from exc
    return _message_to_response(message)


@router.post("/{contract_id}/advance", response_model=ContractResponse)
async def advance_stage(
    contract_id: str,
    body: AdvanceStageRequest,
    request: Request,
    actor_id: str | None = Depends(get_optional_actor_id),
    tenant: TenantContext = Depends(get_tenant),
) -> ContractResponse:
    """Move the contract to another stage if the current stage allows it."""
    workflow = _get_contract_workflow(request)
    try:
        contract = await workflow.advance_stage(
            tenant.tenant_id, contract_id, body.target_stage, actor_id, body.note
        )
    except ContractWorkflowError as exc:
        raise to_http_error(exc) from exc
    return _contract_to_response(contract)


@router.post("/{contract_id}/review", response_model=ContractResponse)
async def review_contract(
    contract_id: str,
    body: ReviewContractRequest,
    request: Request,
    actor_id: str = Depends(get_actor_id),
    tenant: TenantContext = Depends(get_tenant),
) -> ContractResponse:
    """Agent review: accept, modify, or reject."""
    workflow = _get_contract_workflow(request)
    try:
        contract = await workflow.review_contract(
            tenant.tenant_id, contract_id, actor_id, body.action, body.note
        )
    except ContractWorkflowError as exc:
        raise to_http_error(exc) from exc
    return _contract_to_response(contract)


@router.post("/{contract_id}/sign", response_model=ContractResponse)
async def sign_contract(
    contract_id: str,
    body: SignContractRequest,
    request: Request,
    actor_id: str = Depends(get_actor_id),
    tenant: TenantContext = Depends(get_tenant),
) -> ContractResponse:
    """Sign as agent, or confirm as team (finalizes the contract)."""
    workflow = _get_contract_workflow(request)

    image: bytes | None = None
    mime_type = "image/png"
    if body.signature_image:
        try:
            image, mime_type = decode_signature_image(body.signature_image)
        except ValueError as exc:
            raise to_http_error(PreconditionViolationError(str(exc))) from exc

    try:
        contract = await workflow.sign_contract(
            tenant.tenant_id,
            contract_id,
            body.party,
            actor_id,
            signature_image=image,
            mime_type=mime_type,
        )
    except ContractWorkflowError as exc:
        raise to_http_error(exc) from exc
    return _contract_to_response(contract)


@router.post("/{contract_id}/expire", response_model=ContractResponse)
async def expire_contract(
    contract_id: str,
    request: Request,
    body: ExpireContractRequest | None = None,
    actor_id: str | None = Depends(get_optional_actor_id),
    tenant: TenantContext = Depends(get_tenant),
) -> ContractResponse:
    """Manually expire a contract that has not reached signing."""
    workflow = _get_contract_workflow(request)
    try:
        contract = await workflow.expire_contract(
            tenant.tenant_id, contract_id, actor_id, body.reason if body else None
        )
    except ContractWorkflowError as exc:
        raise to_http_error(exc) from exc
    return _contract_to_response(contract)
