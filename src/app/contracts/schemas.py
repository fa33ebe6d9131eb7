"""Pydantic schemas for contract negotiation -- pitches, contracts, terms, signatures.

Defines all structured types for the contract lifecycle:
- Enums: TransferType, PitchStatus, PitchDealStage, ContractPriority, WorkflowStepType
- Terms: PlainTextTerms | StructuredTerms tagged union (ContractTerms)
- Signatures: PartySignature, SignatureRecord
- Pitches: PitchCreate/Read/Update/Filter
- Contracts: ContractCreate/Read/Filter, ContractChanges, FinancialSummary
- Revisions: ContractTermsUpdate
- History: WorkflowStepCreate/Read
- Messages: ContractMessageType, ContractMessageCreate/Read
- Progress: ContractProgress

ContractStage/ContractStatus live in contracts.stages (not duplicated).
"""

from __future__ import annotations

from datetime import datetime
from enum import Enum
from typing import Annotated, Any, Literal, Union

from pydantic import BaseModel, Field

from src.app.contracts.stages import ContractStage, ContractStatus, SigningParty


# ── Enums ───────────────────────────────────────────────────────────────────


class TransferType(str, Enum):
    """Kind of transfer a pitch offers."""

    PERMANENT = "permanent"
    LOAN = "loan"


class PitchStatus(str, Enum):
    """Lifecycle of a transfer listing."""

    ACTIVE = "active"
    NEGOTIATING = "negotiating"
    COMPLETED = "completed"
    WITHDRAWN = "withdrawn"
    EXPIRED = "expired"


class PitchDealStage(str, Enum):
    """How far the listing has progressed toward a signed contract."""

    OPEN = "open"
    CONTRACT_NEGOTIATION = "contract_negotiation"
    COMPLETED = "completed"


class ContractPriority(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


class WorkflowStepType(str, Enum):
    """Kinds of entries in a contract's workflow history."""

    DRAFT_CREATED = "draft_created"
    SENT_TO_AGENT = "sent_to_agent"
    STAGE_ADVANCED = "stage_advanced"
    AGENT_REVIEWED = "agent_reviewed"
    AGENT_MODIFIED = "agent_modified"
    AGENT_REJECTED = "agent_rejected"
    TERMS_UPDATED = "terms_updated"
    SIGNED = "signed"
    FINALIZED = "finalized"
    EXPIRED = "expired"


# ── Terms ───────────────────────────────────────────────────────────────────


class PlainTextTerms(BaseModel):
    """Free-text contract terms."""

    kind: Literal["text"] = "text"
    text: str = ""


class StructuredTerms(BaseModel):
    """Key/value contract terms (salary, duration, clauses, ...)."""

    kind: Literal["structured"] = "structured"
    fields: dict[str, Any] = Field(default_factory=dict)


# Decided at write time by the ``kind`` tag; never inferred from field names.
ContractTerms = Annotated[
    Union[PlainTextTerms, StructuredTerms],
    Field(discriminator="kind"),
]


# ── Signatures ──────────────────────────────────────────────────────────────


class PartySignature(BaseModel):
    """One filled signer slot."""

    signer_id: str
    signed_at: datetime
    image_url: str | None = None


class SignatureRecord(BaseModel):
    """Agent and team signer slots. The team slot is filled only after the agent's."""

    agent: PartySignature | None = None
    team: PartySignature | None = None

    def slot(self, party: SigningParty) -> PartySignature | None:
        """Return the signature in ``party``'s slot, if any."""
        return self.agent if party == SigningParty.AGENT else self.team

    def with_signature(
        self, party: SigningParty, signature: PartySignature
    ) -> SignatureRecord:
        """Return a copy with ``party``'s slot filled."""
        return self.model_copy(update={party.value: signature})

    @property
    def is_complete(self) -> bool:
        return self.agent is not None and self.team is not None


# ── Pitch Schemas ───────────────────────────────────────────────────────────


class PitchCreate(BaseModel):
    """Schema for publishing a transfer listing."""

    team_id: str
    player_id: str | None = None
    transfer_type: TransferType = TransferType.PERMANENT
    asking_price: float | None = Field(default=None, ge=0)
    currency: str = Field(default="USD", min_length=3, max_length=3)
    description: str | None = None
    expires_at: datetime | None = None


class PitchRead(BaseModel):
    """Full pitch representation."""

    id: str
    tenant_id: str
    team_id: str
    player_id: str | None = None
    transfer_type: TransferType = TransferType.PERMANENT
    asking_price: float | None = None
    currency: str = "USD"
    status: PitchStatus = PitchStatus.ACTIVE
    deal_stage: PitchDealStage = PitchDealStage.OPEN
    description: str | None = None
    contract_finalized: bool = False
    contract_finalized_at: datetime | None = None
    expires_at: datetime | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None


class PitchUpdate(BaseModel):
    """Lifecycle fields the contract workflow updates on a pitch."""

    status: PitchStatus | None = None
    deal_stage: PitchDealStage | None = None
    contract_finalized: bool | None = None
    contract_finalized_at: datetime | None = None


class PitchFilter(BaseModel):
    """Filter criteria for listing pitches."""

    team_id: str | None = None
    status: PitchStatus | None = None


# ── Contract Schemas ────────────────────────────────────────────────────────


class FinancialSummary(BaseModel):
    """Settlement figures computed when a contract is finalized."""

    contract_value: float = 0.0
    currency: str = "USD"
    service_charge_rate: float = 0.15
    service_charge_amount: float = 0.0
    finalized_at: datetime | None = None


class ContractCreate(BaseModel):
    """Schema for opening a contract on a pitch.

    Value and currency default to the pitch's asking price and currency.
    """

    pitch_id: str
    team_id: str
    contract_value: float | None = Field(default=None, ge=0)
    currency: str | None = Field(default=None, min_length=3, max_length=3)
    terms: ContractTerms = Field(default_factory=PlainTextTerms)
    priority: ContractPriority = ContractPriority.MEDIUM
    expires_at: datetime | None = None
    created_by: str | None = None


class ContractRead(BaseModel):
    """Full contract representation with the derived status."""

    id: str
    tenant_id: str
    pitch_id: str
    team_id: str
    agent_id: str | None = None
    player_id: str | None = None
    contract_value: float | None = None
    currency: str = "USD"
    terms: ContractTerms = Field(default_factory=PlainTextTerms)
    deal_stage: ContractStage = ContractStage.DRAFT
    status: ContractStatus = ContractStatus.DRAFT
    signatures: SignatureRecord = Field(default_factory=SignatureRecord)
    financial_summary: FinancialSummary | None = None
    priority: ContractPriority = ContractPriority.MEDIUM
    negotiation_rounds: int = 0
    version: int = 1
    response_deadline: datetime | None = None
    expires_at: datetime | None = None
    created_by: str | None = None
    last_activity_at: datetime | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None


class ContractChanges(BaseModel):
    """Fields a single workflow write may change.

    ``status`` is intentionally absent: the repository derives it from
    ``deal_stage`` when the stage changes.
    """

    deal_stage: ContractStage | None = None
    agent_id: str | None = None
    signatures: SignatureRecord | None = None
    financial_summary: FinancialSummary | None = None
    negotiation_rounds: int | None = None
    response_deadline: datetime | None = None
    terms: ContractTerms | None = None
    contract_value: float | None = None
    currency: str | None = None


class ContractFilter(BaseModel):
    """Filter criteria for listing contracts."""

    status: ContractStatus | None = None
    deal_stage: ContractStage | None = None
    team_id: str | None = None
    agent_id: str | None = None
    pitch_id: str | None = None
    priority: ContractPriority | None = None
    date_from: datetime | None = None
    date_to: datetime | None = None


class ContractTermsUpdate(BaseModel):
    """Revised offer from the creating team. Omitted fields keep their value."""

    terms: ContractTerms | None = None
    contract_value: float | None = Field(default=None, ge=0)
    currency: str | None = Field(default=None, min_length=3, max_length=3)
    note: str | None = None

    @property
    def is_empty(self) -> bool:
        return self.terms is None and self.contract_value is None and self.currency is None


# ── Workflow History ────────────────────────────────────────────────────────


class WorkflowStepCreate(BaseModel):
    """History entry written alongside a contract update."""

    step_type: WorkflowStepType
    from_stage: ContractStage | None = None
    to_stage: ContractStage | None = None
    actor_id: str | None = None
    notes: str | None = None


class WorkflowStepRead(WorkflowStepCreate):
    id: str
    contract_id: str
    created_at: datetime | None = None


# ── Negotiation Messages ────────────────────────────────────────────────────


class ContractMessageType(str, Enum):
    DISCUSSION = "discussion"
    COUNTER_OFFER = "counter_offer"
    CLARIFICATION = "clarification"


class ContractMessageCreate(BaseModel):
    """A message in a contract's negotiation thread.

    ``related_field`` optionally names the term being discussed (e.g. "salary").
    """

    content: str = Field(..., min_length=1, max_length=5000)
    message_type: ContractMessageType = ContractMessageType.DISCUSSION
    related_field: str | None = Field(default=None, max_length=100)


class ContractMessageRead(ContractMessageCreate):
    id: str
    contract_id: str
    sender_id: str
    created_at: datetime | None = None


# ── Progress ────────────────────────────────────────────────────────────────


class ContractProgress(BaseModel):
    """Where a contract sits on the stage path and what it can do next."""

    contract_id: str
    deal_stage: ContractStage
    status: ContractStatus
    position: int | None = None
    total_stages: int
    can_advance: bool = False
    next_stage: ContractStage | None = None
    legal_actions: list[ContractStage] = Field(default_factory=list)
    is_terminal: bool = False
