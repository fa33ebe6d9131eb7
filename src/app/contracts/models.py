"""Contract negotiation persistence models -- tenant-scoped tables.

Four SQLAlchemy models using TenantBase for schema_translate_map isolation:
- PitchModel: Transfer listing a team publishes for a player
- ContractModel: Negotiation between the listing team and an agent
- ContractWorkflowStepModel: Append-only history of workflow steps
- ContractMessageModel: Negotiation thread between the team and the agent

All models use the "tenant" placeholder schema, remapped at runtime to the
actual tenant schema (e.g., "tenant_fc_porto") via schema_translate_map.
"""

from __future__ import annotations

import uuid
from datetime import datetime

from sqlalchemy import (
    Boolean,
    DateTime,
    Float,
    Index,
    Integer,
    String,
    Text,
    func,
    text,
)
from sqlalchemy.dialects.postgresql import JSON, UUID
from sqlalchemy.orm import Mapped, mapped_column

from src.app.core.database import TenantBase


class PitchModel(TenantBase):
    """Transfer listing created by a team offering a player.

    Contracts reference exactly one pitch. The pitch's status and deal_stage
    follow the contract lifecycle (negotiating while a contract is open,
    completed once it is finalized).
    """

    __tablename__ = "pitches"
    __table_args__ = (
        Index("idx_pitches_tenant_team", "tenant_id", "team_id"),
        {"schema": "tenant"},
    )

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        primary_key=True,
        server_default=text("gen_random_uuid()"),
    )
    tenant_id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), nullable=False)
    team_id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), nullable=False)
    player_id: Mapped[uuid.UUID | None] = mapped_column(UUID(as_uuid=True), nullable=True)
    transfer_type: Mapped[str] = mapped_column(
        String(20), default="permanent", server_default=text("'permanent'")
    )
    asking_price: Mapped[float | None] = mapped_column(Float, nullable=True)
    currency: Mapped[str] = mapped_column(
        String(3), default="USD", server_default=text("'USD'")
    )
    status: Mapped[str] = mapped_column(
        String(20), default="active", server_default=text("'active'")
    )
    deal_stage: Mapped[str] = mapped_column(
        String(50), default="open", server_default=text("'open'")
    )
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    contract_finalized: Mapped[bool] = mapped_column(
        Boolean, default=False, server_default=text("false")
    )
    contract_finalized_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True
    )
    expires_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
    )
    updated_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True),
        onupdate=func.now(),
        nullable=True,
    )


class ContractModel(TenantBase):
    """Transfer negotiation between a team and an agent, tied to a pitch.

    deal_stage is canonical; status is written alongside it from the
    stage -> status table and is never set on its own. Every write bumps
    ``version`` so concurrent editors cannot silently overwrite each other.
    Terms are stored as the tagged JSON document ({"kind": ..., ...}).
    """

    __tablename__ = "contracts"
    __table_args__ = (
        Index("idx_contracts_tenant_stage", "tenant_id", "deal_stage"),
        Index("idx_contracts_tenant_pitch", "tenant_id", "pitch_id"),
        {"schema": "tenant"},
    )

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        primary_key=True,
        server_default=text("gen_random_uuid()"),
    )
    tenant_id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), nullable=False)
    pitch_id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), nullable=False)
    team_id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), nullable=False)
    agent_id: Mapped[uuid.UUID | None] = mapped_column(UUID(as_uuid=True), nullable=True)
    player_id: Mapped[uuid.UUID | None] = mapped_column(UUID(as_uuid=True), nullable=True)
    contract_value: Mapped[float | None] = mapped_column(Float, nullable=True)
    currency: Mapped[str] = mapped_column(
        String(3), default="USD", server_default=text("'USD'")
    )
    terms: Mapped[dict] = mapped_column(
        JSON, default=dict, server_default=text("'{}'::json")
    )
    deal_stage: Mapped[str] = mapped_column(
        String(50), default="draft", server_default=text("'draft'")
    )
    status: Mapped[str] = mapped_column(
        String(20), default="draft", server_default=text("'draft'")
    )
    signatures: Mapped[dict] = mapped_column(
        JSON, default=dict, server_default=text("'{}'::json")
    )
    financial_summary: Mapped[dict] = mapped_column(
        JSON, default=dict, server_default=text("'{}'::json")
    )
    priority: Mapped[str] = mapped_column(
        String(10), default="medium", server_default=text("'medium'")
    )
    negotiation_rounds: Mapped[int] = mapped_column(
        Integer, default=0, server_default=text("0")
    )
    version: Mapped[int] = mapped_column(
        Integer, default=1, server_default=text("1")
    )
    response_deadline: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True
    )
    expires_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True
    )
    created_by: Mapped[uuid.UUID | None] = mapped_column(UUID(as_uuid=True), nullable=True)
    last_activity_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
    )
    updated_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True),
        onupdate=func.now(),
        nullable=True,
    )


class ContractWorkflowStepModel(TenantBase):
    """One entry in a contract's workflow history.

    Written in the same transaction as the contract update it describes,
    so history and state can never disagree.
    """

    __tablename__ = "contract_workflow_steps"
    __table_args__ = (
        Index("idx_workflow_steps_contract", "tenant_id", "contract_id"),
        {"schema": "tenant"},
    )

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        primary_key=True,
        server_default=text("gen_random_uuid()"),
    )
    tenant_id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), nullable=False)
    contract_id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), nullable=False)
    step_type: Mapped[str] = mapped_column(String(30), nullable=False)
    from_stage: Mapped[str | None] = mapped_column(String(50), nullable=True)
    to_stage: Mapped[str | None] = mapped_column(String(50), nullable=True)
    actor_id: Mapped[uuid.UUID | None] = mapped_column(UUID(as_uuid=True), nullable=True)
    notes: Mapped[str | None] = mapped_column(Text, nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
    )


class ContractMessageModel(TenantBase):
    """One message in a contract's negotiation thread. Append-only."""

    __tablename__ = "contract_messages"
    __table_args__ = (
        Index("idx_contract_messages_contract", "tenant_id", "contract_id", "created_at"),
        {"schema": "tenant"},
    )

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        primary_key=True,
        server_default=text("gen_random_uuid()"),
    )
    tenant_id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), nullable=False)
    contract_id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), nullable=False)
    sender_id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), nullable=False)
    content: Mapped[str] = mapped_column(Text, nullable=False)
    message_type: Mapped[str] = mapped_column(
        String(30), default="discussion", server_default=text("'discussion'")
    )
    related_field: Mapped[str | None] = mapped_column(String(100), nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
    )
