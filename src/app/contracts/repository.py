"""Contract repository -- async CRUD for pitches, contracts, workflow history and messages.

Provides ContractRepository with the session_factory callable pattern.
Handles serialization between Pydantic schemas and SQLAlchemy models.

All methods take tenant_id as first argument for tenant-scoped queries.
Every contract mutation goes through apply_transition(), which performs a
version-guarded UPDATE, appends the workflow step and (optionally) updates
the pitch in one transaction. The status column is derived from deal_stage
here and nowhere else.
"""

from __future__ import annotations

import uuid
from collections.abc import AsyncGenerator, Callable
from datetime import datetime, timezone
from typing import Any

import structlog
from sqlalchemy import or_, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from src.app.contracts.models import (
    ContractMessageModel,
    ContractModel,
    ContractWorkflowStepModel,
    PitchModel,
)
from src.app.contracts.schemas import (
    ContractChanges,
    ContractCreate,
    ContractFilter,
    ContractMessageCreate,
    ContractMessageRead,
    ContractRead,
    FinancialSummary,
    PitchCreate,
    PitchFilter,
    PitchRead,
    PitchUpdate,
    SignatureRecord,
    WorkflowStepCreate,
    WorkflowStepRead,
)
from src.app.contracts.stages import EXPIRABLE_STAGES, ContractStage, status_for

logger = structlog.get_logger(__name__)


# ── Serialization Helpers ───────────────────────────────────────────────────


def _uuid_or_none(value: str | None) -> uuid.UUID | None:
    return uuid.UUID(value) if value else None


def _str_or_none(value: uuid.UUID | None) -> str | None:
    return str(value) if value else None


def _model_to_pitch(model: PitchModel) -> PitchRead:
    """Convert PitchModel to PitchRead schema."""
    return PitchRead(
        id=str(model.id),
        tenant_id=str(model.tenant_id),
        team_id=str(model.team_id),
        player_id=_str_or_none(model.player_id),
        transfer_type=model.transfer_type,
        asking_price=model.asking_price,
        currency=model.currency,
        status=model.status,
        deal_stage=model.deal_stage,
        description=model.description,
        contract_finalized=bool(model.contract_finalized),
        contract_finalized_at=model.contract_finalized_at,
        expires_at=model.expires_at,
        created_at=model.created_at,
        updated_at=model.updated_at,
    )


def _model_to_contract(model: ContractModel) -> ContractRead:
    """Convert ContractModel to ContractRead schema.

    Terms without a ``kind`` tag (legacy empty documents) read back as
    empty plain text.
    """
    terms = model.terms or {}
    if "kind" not in terms:
        terms = {"kind": "text", "text": ""}

    return ContractRead(
        id=str(model.id),
        tenant_id=str(model.tenant_id),
        pitch_id=str(model.pitch_id),
        team_id=str(model.team_id),
        agent_id=_str_or_none(model.agent_id),
        player_id=_str_or_none(model.player_id),
        contract_value=model.contract_value,
        currency=model.currency,
        terms=terms,
        deal_stage=model.deal_stage,
        status=model.status,
        signatures=SignatureRecord.model_validate(model.signatures or {}),
        financial_summary=(
            FinancialSummary.model_validate(model.financial_summary)
            if model.financial_summary
            else None
        ),
        priority=model.priority,
        negotiation_rounds=model.negotiation_rounds or 0,
        version=model.version or 1,
        response_deadline=model.response_deadline,
        expires_at=model.expires_at,
        created_by=_str_or_none(model.created_by),
        last_activity_at=model.last_activity_at,
        created_at=model.created_at,
        updated_at=model.updated_at,
    )


def _model_to_step(model: ContractWorkflowStepModel) -> WorkflowStepRead:
    """Convert ContractWorkflowStepModel to WorkflowStepRead schema."""
    return WorkflowStepRead(
        id=str(model.id),
        contract_id=str(model.contract_id),
        step_type=model.step_type,
        from_stage=model.from_stage,
        to_stage=model.to_stage,
        actor_id=_str_or_none(model.actor_id),
        notes=model.notes,
        created_at=model.created_at,
    )


def _model_to_message(model: ContractMessageModel) -> ContractMessageRead:
    return ContractMessageRead(
        id=str(model.id),
        contract_id=str(model.contract_id),
        sender_id=str(model.sender_id),
        content=model.content,
        message_type=model.message_type,
        related_field=model.related_field,
        created_at=model.created_at,
    )


def _changes_to_values(changes: ContractChanges, now: datetime) -> dict[str, Any]:
    """Column values for a contract update, with status derived from the stage."""
    values: dict[str, Any] = {"updated_at": now, "last_activity_at": now}
    if changes.deal_stage is not None:
        values["deal_stage"] = changes.deal_stage.value
        values["status"] = status_for(changes.deal_stage).value
    if changes.agent_id is not None:
        values["agent_id"] = uuid.UUID(changes.agent_id)
    if changes.signatures is not None:
        values["signatures"] = changes.signatures.model_dump(mode="json")
    if changes.financial_summary is not None:
        values["financial_summary"] = changes.financial_summary.model_dump(mode="json")
    if changes.negotiation_rounds is not None:
        values["negotiation_rounds"] = changes.negotiation_rounds
    if changes.response_deadline is not None:
        values["response_deadline"] = changes.response_deadline
    if changes.terms is not None:
        values["terms"] = changes.terms.model_dump(mode="json")
    if changes.contract_value is not None:
        values["contract_value"] = changes.contract_value
    if changes.currency is not None:
        values["currency"] = changes.currency.upper()
    return values


def _step_model(
    tenant_id: str, contract_id: uuid.UUID, step: WorkflowStepCreate
) -> ContractWorkflowStepModel:
    return ContractWorkflowStepModel(
        tenant_id=uuid.UUID(tenant_id),
        contract_id=contract_id,
        step_type=step.step_type.value,
        from_stage=step.from_stage.value if step.from_stage else None,
        to_stage=step.to_stage.value if step.to_stage else None,
        actor_id=_uuid_or_none(step.actor_id),
        notes=step.notes,
    )


# ── Repository ──────────────────────────────────────────────────────────────


class ContractRepository:
    """Async CRUD operations for pitches, contracts, and workflow history.

    All methods take tenant_id as first argument for tenant-scoped queries.

    Args:
        session_factory: Async callable that yields AsyncSession instances.
    """

    def __init__(
        self, session_factory: Callable[..., AsyncGenerator[AsyncSession, None]]
    ) -> None:
        self._session_factory = session_factory

    # ── Pitches ─────────────────────────────────────────────────────────────

    async def create_pitch(self, tenant_id: str, data: PitchCreate) -> PitchRead:
        """Create a new transfer pitch.

        Args:
            tenant_id: Tenant UUID string.
            data: PitchCreate schema with listing details.

        Returns:
            PitchRead with all persisted fields.
        """
        async for session in self._session_factory():
            model = PitchModel(
                tenant_id=uuid.UUID(tenant_id),
                team_id=uuid.UUID(data.team_id),
                player_id=_uuid_or_none(data.player_id),
                transfer_type=data.transfer_type.value,
                asking_price=data.asking_price,
                currency=data.currency.upper(),
                description=data.description,
                expires_at=data.expires_at,
            )
            session.add(model)
            await session.commit()
            await session.refresh(model)
            return _model_to_pitch(model)

    async def get_pitch(self, tenant_id: str, pitch_id: str) -> PitchRead | None:
        """Get a pitch by ID.

        Returns:
            PitchRead if found, None otherwise.
        """
        async for session in self._session_factory():
            stmt = select(PitchModel).where(
                PitchModel.tenant_id == uuid.UUID(tenant_id),
                PitchModel.id == uuid.UUID(pitch_id),
            )
            result = await session.execute(stmt)
            model = result.scalar_one_or_none()
            if model is None:
                return None
            return _model_to_pitch(model)

    async def list_pitches(
        self, tenant_id: str, filters: PitchFilter | None = None
    ) -> list[PitchRead]:
        """List pitches, newest first, with optional team/status filters."""
        async for session in self._session_factory():
            stmt = select(PitchModel).where(
                PitchModel.tenant_id == uuid.UUID(tenant_id)
            )
            if filters is not None:
                if filters.team_id:
                    stmt = stmt.where(PitchModel.team_id == uuid.UUID(filters.team_id))
                if filters.status:
                    stmt = stmt.where(PitchModel.status == filters.status.value)
            stmt = stmt.order_by(PitchModel.created_at.desc())
            result = await session.execute(stmt)
            return [_model_to_pitch(m) for m in result.scalars().all()]

    # ── Contracts ───────────────────────────────────────────────────────────

    async def create_contract(
        self,
        tenant_id: str,
        data: ContractCreate,
        *,
        player_id: str | None,
        step: WorkflowStepCreate,
        pitch_update: PitchUpdate | None = None,
    ) -> ContractRead:
        """Create a contract in the draft stage.

        The draft_created step and the pitch update are written in the same
        transaction.

        Args:
            tenant_id: Tenant UUID string.
            data: ContractCreate with value and currency already resolved.
            player_id: Player copied from the pitch.
            step: History entry to append.
            pitch_update: Lifecycle change for the referenced pitch.

        Returns:
            ContractRead with all persisted fields.
        """
        now = datetime.now(timezone.utc)
        async for session in self._session_factory():
            model = ContractModel(
                tenant_id=uuid.UUID(tenant_id),
                pitch_id=uuid.UUID(data.pitch_id),
                team_id=uuid.UUID(data.team_id),
                player_id=_uuid_or_none(player_id),
                contract_value=data.contract_value,
                currency=(data.currency or "USD").upper(),
                terms=data.terms.model_dump(mode="json"),
                deal_stage=ContractStage.DRAFT.value,
                status=status_for(ContractStage.DRAFT).value,
                signatures={},
                financial_summary={},
                priority=data.priority.value,
                negotiation_rounds=0,
                version=1,
                expires_at=data.expires_at,
                created_by=_uuid_or_none(data.created_by),
                last_activity_at=now,
            )
            session.add(model)
            await session.flush()

            session.add(_step_model(tenant_id, model.id, step))
            if pitch_update is not None:
                await self._update_pitch(session, tenant_id, data.pitch_id, pitch_update)

            await session.commit()
            await session.refresh(model)
            logger.info(
                "contract.created",
                tenant_id=tenant_id,
                contract_id=str(model.id),
                pitch_id=data.pitch_id,
            )
            return _model_to_contract(model)

    async def get_contract(
        self, tenant_id: str, contract_id: str
    ) -> ContractRead | None:
        """Get a contract by ID.

        Returns:
            ContractRead if found, None otherwise.
        """
        async for session in self._session_factory():
            stmt = select(ContractModel).where(
                ContractModel.tenant_id == uuid.UUID(tenant_id),
                ContractModel.id == uuid.UUID(contract_id),
            )
            result = await session.execute(stmt)
            model = result.scalar_one_or_none()
            if model is None:
                return None
            return _model_to_contract(model)

    async def list_contracts(
        self, tenant_id: str, filters: ContractFilter | None = None
    ) -> list[ContractRead]:
        """List contracts, most recently active first.

        Args:
            tenant_id: Tenant UUID string.
            filters: Optional ContractFilter.

        Returns:
            List of matching ContractRead instances.
        """
        async for session in self._session_factory():
            stmt = select(ContractModel).where(
                ContractModel.tenant_id == uuid.UUID(tenant_id)
            )
            if filters is not None:
                if filters.status:
                    stmt = stmt.where(ContractModel.status == filters.status.value)
                if filters.deal_stage:
                    stmt = stmt.where(ContractModel.deal_stage == filters.deal_stage.value)
                if filters.team_id:
                    stmt = stmt.where(ContractModel.team_id == uuid.UUID(filters.team_id))
                if filters.agent_id:
                    stmt = stmt.where(ContractModel.agent_id == uuid.UUID(filters.agent_id))
                if filters.pitch_id:
                    stmt = stmt.where(ContractModel.pitch_id == uuid.UUID(filters.pitch_id))
                if filters.priority:
                    stmt = stmt.where(ContractModel.priority == filters.priority.value)
                if filters.date_from:
                    stmt = stmt.where(ContractModel.created_at >= filters.date_from)
                if filters.date_to:
                    stmt = stmt.where(ContractModel.created_at <= filters.date_to)
            stmt = stmt.order_by(ContractModel.last_activity_at.desc().nulls_last())
            result = await session.execute(stmt)
            return [_model_to_contract(m) for m in result.scalars().all()]

    async def list_expirable(
        self, tenant_id: str, now: datetime
    ) -> list[ContractRead]:
        """Contracts in an expirable stage whose expiry or response deadline has passed."""
        async for session in self._session_factory():
            stmt = select(ContractModel).where(
                ContractModel.tenant_id == uuid.UUID(tenant_id),
                ContractModel.deal_stage.in_([s.value for s in EXPIRABLE_STAGES]),
                or_(
                    ContractModel.expires_at < now,
                    ContractModel.response_deadline < now,
                ),
            )
            result = await session.execute(stmt)
            return [_model_to_contract(m) for m in result.scalars().all()]

    async def apply_transition(
        self,
        tenant_id: str,
        contract_id: str,
        expected_version: int,
        changes: ContractChanges,
        step: WorkflowStepCreate,
        pitch_update: PitchUpdate | None = None,
    ) -> ContractRead | None:
        """Apply one workflow write atomically.

        Updates the contract only if its version still equals
        ``expected_version``, bumps the version, appends ``step`` and applies
        ``pitch_update``, all in a single commit.

        Returns:
            The updated ContractRead, or None if the row was missing or had
            been modified since it was read (nothing is written in that case).
        """
        now = datetime.now(timezone.utc)
        async for session in self._session_factory():
            values = _changes_to_values(changes, now)
            stmt = (
                update(ContractModel)
                .where(
                    ContractModel.tenant_id == uuid.UUID(tenant_id),
                    ContractModel.id == uuid.UUID(contract_id),
                    ContractModel.version == expected_version,
                )
                .values(**values, version=ContractModel.version + 1)
                .returning(ContractModel)
            )
            result = await session.execute(stmt)
            model = result.scalar_one_or_none()
            if model is None:
                await session.rollback()
                logger.warning(
                    "contract.version_conflict",
                    tenant_id=tenant_id,
                    contract_id=contract_id,
                    expected_version=expected_version,
                )
                return None

            session.add(_step_model(tenant_id, model.id, step))
            if pitch_update is not None:
                await self._update_pitch(session, tenant_id, str(model.pitch_id), pitch_update)

            await session.commit()
            return _model_to_contract(model)

    async def list_steps(
        self, tenant_id: str, contract_id: str
    ) -> list[WorkflowStepRead]:
        """Workflow history of a contract in chronological order."""
        async for session in self._session_factory():
            stmt = (
                select(ContractWorkflowStepModel)
                .where(
                    ContractWorkflowStepModel.tenant_id == uuid.UUID(tenant_id),
                    ContractWorkflowStepModel.contract_id == uuid.UUID(contract_id),
                )
                .order_by(ContractWorkflowStepModel.created_at.asc())
            )
            result = await session.execute(stmt)
            return [_model_to_step(m) for m in result.scalars().all()]

    # ── Messages ────────────────────────────────────────────────────────────

    async def add_message(
        self,
        tenant_id: str,
        contract_id: str,
        sender_id: str,
        data: ContractMessageCreate,
    ) -> ContractMessageRead:
        """Append a message to a contract's negotiation thread.

        Also touches the contract's last_activity_at so pipeline views
        surface active threads. The version is left alone: a message never
        conflicts with a stage change.
        """
        now = datetime.now(timezone.utc)
        async for session in self._session_factory():
            model = ContractMessageModel(
                tenant_id=uuid.UUID(tenant_id),
                contract_id=uuid.UUID(contract_id),
                sender_id=uuid.UUID(sender_id),
                content=data.content,
                message_type=data.message_type.value,
                related_field=data.related_field,
            )
            session.add(model)
            await session.execute(
                update(ContractModel)
                .where(
                    ContractModel.tenant_id == uuid.UUID(tenant_id),
                    ContractModel.id == uuid.UUID(contract_id),
                )
                .values(last_activity_at=now)
            )
            await session.commit()
            await session.refresh(model)
            return _model_to_message(model)

    async def list_messages(
        self, tenant_id: str, contract_id: str
    ) -> list[ContractMessageRead]:
        """Negotiation thread of a contract, oldest first."""
        async for session in self._session_factory():
            stmt = (
                select(ContractMessageModel)
                .where(
                    ContractMessageModel.tenant_id == uuid.UUID(tenant_id),
                    ContractMessageModel.contract_id == uuid.UUID(contract_id),
                )
                .order_by(ContractMessageModel.created_at.asc())
            )
            result = await session.execute(stmt)
            return [_model_to_message(m) for m in result.scalars().all()]

    # ── Internal ────────────────────────────────────────────────────────────

    async def _update_pitch(
        self,
        session: AsyncSession,
        tenant_id: str,
        pitch_id: str,
        data: PitchUpdate,
    ) -> None:
        values: dict[str, Any] = {}
        if data.status is not None:
            values["status"] = data.status.value
        if data.deal_stage is not None:
            values["deal_stage"] = data.deal_stage.value
        if data.contract_finalized is not None:
            values["contract_finalized"] = data.contract_finalized
        if data.contract_finalized_at is not None:
            values["contract_finalized_at"] = data.contract_finalized_at
        if not values:
            return
        values["updated_at"] = datetime.now(timezone.utc)
        await session.execute(
            update(PitchModel)
            .where(
                PitchModel.tenant_id == uuid.UUID(tenant_id),
                PitchModel.id == uuid.UUID(pitch_id),
            )
            .values(**values)
        )
