"""Contract workflow orchestrator.

Binds caller actions (send, revise, advance, review, sign, expire) to persisted
stage changes. Every mutating operation follows the same shape:

1. Load the contract (missing -> ContractNotFoundError)
2. Check actor and stage preconditions, validate the transition against
   the stage engine (nothing has been written yet)
3. Write once via ContractRepository.apply_transition(), which is guarded
   by the contract version and appends the workflow step in the same
   transaction
4. Fire-and-forget side effects: notifications and timeline entries

Failures are raised as ContractWorkflowError subclasses and are never
retried here. Persistence errors surface as UpstreamFailureError.

Exports:
    ContractWorkflow: The orchestrator.
"""

from __future__ import annotations

import uuid
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager
from datetime import datetime, timedelta, timezone

import structlog
from sqlalchemy.exc import SQLAlchemyError

from src.app.config import Settings, get_settings
from src.app.contracts.analytics import ContractPipeline, build_pipeline
from src.app.contracts.errors import (
    ContractNotFoundError,
    ContractWorkflowError,
    IllegalTransitionError,
    InvalidSignatureOrderError,
    PreconditionViolationError,
    UpstreamFailureError,
)
from src.app.contracts.repository import ContractRepository
from src.app.contracts.schemas import (
    ContractChanges,
    ContractCreate,
    ContractFilter,
    ContractMessageCreate,
    ContractMessageRead,
    ContractProgress,
    ContractRead,
    ContractTermsUpdate,
    FinancialSummary,
    PartySignature,
    PitchCreate,
    PitchDealStage,
    PitchFilter,
    PitchRead,
    PitchStatus,
    PitchUpdate,
    WorkflowStepCreate,
    WorkflowStepRead,
    WorkflowStepType,
)
from src.app.contracts.stages import (
    EXPIRABLE_STAGES,
    STAGE_ORDER,
    ContractStage,
    ReviewAction,
    SigningParty,
    can_advance,
    is_terminal,
    legal_actions,
    next_stage,
    review_target,
    stage_position,
    status_for,
    validate_transition,
)
from src.app.core.monitoring import record_stage_transition, track_contract_operation
from src.app.notifications.service import NotificationKind, NotificationService
from src.app.storage.signatures import SignatureStore, signature_key
from src.app.timeline.recorder import TimelineRecorder

logger = structlog.get_logger(__name__)

_REVIEW_STEP_TYPES: dict[ReviewAction, WorkflowStepType] = {
    ReviewAction.ACCEPT: WorkflowStepType.AGENT_REVIEWED,
    ReviewAction.MODIFY: WorkflowStepType.AGENT_MODIFIED,
    ReviewAction.REJECT: WorkflowStepType.AGENT_REJECTED,
}

# From under_review these targets belong to the agent's review, not to /advance.
_REVIEW_ONLY_TARGETS: frozenset[ContractStage] = frozenset({
    ContractStage.SIGNED,
    ContractStage.NEGOTIATING,
})

# The team may revise its offer until it goes under review.
_REVISABLE_STAGES: frozenset[ContractStage] = frozenset({
    ContractStage.DRAFT,
    ContractStage.NEGOTIATING,
})

# Pitch goes back on the market when its contract dies without a deal.
_REOPEN_PITCH = PitchUpdate(status=PitchStatus.ACTIVE, deal_stage=PitchDealStage.OPEN)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _parse_id(value: str, entity: str) -> str:
    """Normalize a UUID string; malformed IDs cannot exist, so they are not-found."""
    try:
        return str(uuid.UUID(str(value)))
    except ValueError:
        raise ContractNotFoundError(entity, str(value))


def _require_uuid(value: str, field: str) -> str:
    try:
        return str(uuid.UUID(str(value)))
    except ValueError:
        raise PreconditionViolationError(f"{field} must be a valid UUID: {value}")


class ContractWorkflow:
    """Orchestrates contract negotiation between a team and an agent.

    Args:
        repository: ContractRepository (or a compatible test double).
        notifier: Fire-and-forget NotificationService.
        signature_store: Blob store for signature images. Optional; signing
            with an image fails with a precondition error when absent.
        timeline_recorder: Optional hook that logs completed transfers on
            the team timeline.
        settings: Service charge rate, default currency and response window.
            Defaults to get_settings().
    """

    def __init__(
        self,
        repository: ContractRepository,
        notifier: NotificationService,
        signature_store: SignatureStore | None = None,
        timeline_recorder: TimelineRecorder | None = None,
        settings: Settings | None = None,
    ) -> None:
        self._repo = repository
        self._notifier = notifier
        self._signatures = signature_store
        self._timeline = timeline_recorder
        self._settings = settings or get_settings()

    # ── Internal helpers ────────────────────────────────────────────────────

    @asynccontextmanager
    async def _operation(self, name: str, **context: str | None) -> AsyncGenerator[None, None]:
        """Metrics, logging and upstream-error translation for one operation."""
        async with track_contract_operation(name):
            try:
                yield
            except ContractWorkflowError as exc:
                logger.info(f"contract.{name}_rejected", code=exc.code, error=exc.message, **context)
                raise
            except SQLAlchemyError as exc:
                logger.error(f"contract.{name}_upstream_failure", error=str(exc), **context)
                raise UpstreamFailureError(name, exc) from exc

    async def _load(self, tenant_id: str, contract_id: str) -> ContractRead:
        contract_id = _parse_id(contract_id, "contract")
        contract = await self._repo.get_contract(tenant_id, contract_id)
        if contract is None:
            raise ContractNotFoundError("contract", contract_id)
        return contract

    async def _write(
        self,
        tenant_id: str,
        contract: ContractRead,
        changes: ContractChanges,
        step: WorkflowStepCreate,
        pitch_update: PitchUpdate | None = None,
    ) -> ContractRead:
        updated = await self._repo.apply_transition(
            tenant_id,
            contract.id,
            contract.version,
            changes,
            step,
            pitch_update,
        )
        if updated is None:
            raise PreconditionViolationError(
                f"Contract {contract.id} was modified concurrently; reload and retry"
            )

        if changes.deal_stage is not None and changes.deal_stage != contract.deal_stage:
            record_stage_transition(contract.deal_stage.value, changes.deal_stage.value, tenant_id)
            logger.info(
                "contract.stage_changed",
                tenant_id=tenant_id,
                contract_id=contract.id,
                from_stage=contract.deal_stage.value,
                to_stage=changes.deal_stage.value,
                status=status_for(changes.deal_stage).value,
                step_type=step.step_type.value,
            )
        return updated

    def _financial_summary(
        self, contract: ContractRead, pitch: PitchRead | None, finalized_at: datetime
    ) -> FinancialSummary:
        """Settlement figures: value falls back to the pitch asking price, then 0."""
        value = contract.contract_value
        if value is None and pitch is not None:
            value = pitch.asking_price
        value = value or 0.0
        rate = self._settings.SERVICE_CHARGE_RATE
        return FinancialSummary(
            contract_value=value,
            currency=contract.currency,
            service_charge_rate=rate,
            service_charge_amount=round(value * rate, 2),
            finalized_at=finalized_at,
        )

    # ── Pitches ─────────────────────────────────────────────────────────────

    async def create_pitch(self, tenant_id: str, data: PitchCreate) -> PitchRead:
        """Publish a transfer listing."""
        _require_uuid(data.team_id, "team_id")
        if data.player_id:
            _require_uuid(data.player_id, "player_id")
        async with self._operation("create_pitch", team_id=data.team_id):
            pitch = await self._repo.create_pitch(tenant_id, data)
        logger.info("pitch.created", tenant_id=tenant_id, pitch_id=pitch.id, team_id=pitch.team_id)
        return pitch

    async def get_pitch(self, tenant_id: str, pitch_id: str) -> PitchRead:
        pitch_id = _parse_id(pitch_id, "pitch")
        async with self._operation("get_pitch", pitch_id=pitch_id):
            pitch = await self._repo.get_pitch(tenant_id, pitch_id)
        if pitch is None:
            raise ContractNotFoundError("pitch", pitch_id)
        return pitch

    async def list_pitches(
        self, tenant_id: str, filters: PitchFilter | None = None
    ) -> list[PitchRead]:
        async with self._operation("list_pitches"):
            return await self._repo.list_pitches(tenant_id, filters)

    # ── Contract lifecycle ──────────────────────────────────────────────────

    async def create_contract(self, tenant_id: str, data: ContractCreate) -> ContractRead:
        """Open a draft contract on an active pitch owned by the creating team.

        Value and currency default to the pitch's asking price and currency.
        The pitch moves to negotiating in the same transaction.

        Raises:
            ContractNotFoundError: Pitch does not exist.
            PreconditionViolationError: Pitch belongs to another team or is
                not open for contracts.
        """
        pitch_id = _parse_id(data.pitch_id, "pitch")
        team_id = _require_uuid(data.team_id, "team_id")
        if data.created_by:
            _require_uuid(data.created_by, "created_by")

        async with self._operation("create_contract", pitch_id=pitch_id):
            pitch = await self._repo.get_pitch(tenant_id, pitch_id)
            if pitch is None:
                raise ContractNotFoundError("pitch", pitch_id)
            if pitch.team_id != team_id:
                raise PreconditionViolationError(
                    f"Pitch {pitch_id} does not belong to team {team_id}"
                )
            if pitch.status != PitchStatus.ACTIVE:
                raise PreconditionViolationError(
                    f"Pitch {pitch_id} is not open for contracts (status: {pitch.status.value})"
                )

            resolved = data.model_copy(update={
                "pitch_id": pitch_id,
                "team_id": team_id,
                "contract_value": (
                    data.contract_value if data.contract_value is not None else pitch.asking_price
                ),
                "currency": (
                    data.currency or pitch.currency or self._settings.DEFAULT_CURRENCY
                ).upper(),
            })
            contract = await self._repo.create_contract(
                tenant_id,
                resolved,
                player_id=pitch.player_id,
                step=WorkflowStepCreate(
                    step_type=WorkflowStepType.DRAFT_CREATED,
                    to_stage=ContractStage.DRAFT,
                    actor_id=data.created_by,
                ),
                pitch_update=PitchUpdate(
                    status=PitchStatus.NEGOTIATING,
                    deal_stage=PitchDealStage.CONTRACT_NEGOTIATION,
                ),
            )
        return contract

    async def send_to_agent(
        self,
        tenant_id: str,
        contract_id: str,
        actor_id: str,
        agent_id: str,
        message: str | None = None,
    ) -> ContractRead:
        """Assign an agent and move a draft into negotiation.

        Sets the agent's response deadline and notifies the agent.

        Raises:
            PreconditionViolationError: Actor is not the creating team, or
                the contract is no longer a draft.
        """
        agent_id = _require_uuid(agent_id, "agent_id")
        async with self._operation("send_to_agent", contract_id=contract_id):
            contract = await self._load(tenant_id, contract_id)
            if actor_id != contract.team_id:
                raise PreconditionViolationError(
                    "Only the creating team can send the contract to an agent"
                )
            if contract.deal_stage != ContractStage.DRAFT:
                raise PreconditionViolationError(
                    f"Only draft contracts can be sent (current stage: {contract.deal_stage.value})"
                )
            target = validate_transition(contract.deal_stage, ContractStage.NEGOTIATING)

            deadline = _utcnow() + timedelta(days=self._settings.CONTRACT_RESPONSE_WINDOW_DAYS)
            updated = await self._write(
                tenant_id,
                contract,
                ContractChanges(deal_stage=target, agent_id=agent_id, response_deadline=deadline),
                WorkflowStepCreate(
                    step_type=WorkflowStepType.SENT_TO_AGENT,
                    from_stage=contract.deal_stage,
                    to_stage=target,
                    actor_id=actor_id,
                    notes=message,
                ),
            )

        await self._notifier.notify(
            tenant_id,
            agent_id,
            NotificationKind.CONTRACT_SENT,
            "New contract for review",
            message or "A team has sent you a contract to negotiate.",
            {"contract_id": updated.id, "pitch_id": updated.pitch_id},
        )
        return updated

    async def update_terms(
        self,
        tenant_id: str,
        contract_id: str,
        actor_id: str,
        data: ContractTermsUpdate,
    ) -> ContractRead:
        """Revise terms, value or currency while the contract is still open for edits.

        Only the creating team may revise, and only in draft or negotiating
        (after a ``modify`` review the contract is back in negotiating, so
        this is how a new round's offer is made). The stage does not change.

        Raises:
            PreconditionViolationError: Nothing to change, wrong actor, or
                the contract is under review, signed or closed.
        """
        if data.is_empty:
            raise PreconditionViolationError(
                "A terms update needs terms, contract_value or currency"
            )
        async with self._operation("update_terms", contract_id=contract_id):
            contract = await self._load(tenant_id, contract_id)
            if actor_id != contract.team_id:
                raise PreconditionViolationError(
                    "Only the creating team can revise the contract terms"
                )
            if contract.deal_stage not in _REVISABLE_STAGES:
                raise PreconditionViolationError(
                    f"Terms can only be revised in draft or negotiating "
                    f"(current stage: {contract.deal_stage.value})"
                )

            updated = await self._write(
                tenant_id,
                contract,
                ContractChanges(
                    terms=data.terms,
                    contract_value=data.contract_value,
                    currency=data.currency.upper() if data.currency else None,
                ),
                WorkflowStepCreate(
                    step_type=WorkflowStepType.TERMS_UPDATED,
                    from_stage=contract.deal_stage,
                    to_stage=contract.deal_stage,
                    actor_id=actor_id,
                    notes=data.note,
                ),
            )

        if updated.agent_id is not None:
            await self._notifier.notify(
                tenant_id,
                updated.agent_id,
                NotificationKind.CONTRACT_UPDATED,
                "Contract terms revised",
                data.note or "The team has revised the contract terms.",
                {"contract_id": updated.id, "negotiation_round": updated.negotiation_rounds},
            )
        return updated

    async def advance_stage(
        self,
        tenant_id: str,
        contract_id: str,
        target_stage: ContractStage | str,
        actor_id: str | None = None,
        note: str | None = None,
    ) -> ContractRead:
        """Move a contract to ``target_stage`` if the stage engine allows it.

        Writes deal_stage, the derived status and the update time in one
        record update. An illegal target leaves the stored record untouched.

        Raises:
            IllegalTransitionError: Target not in legal_actions(current stage).
            PreconditionViolationError: Review requested before an agent is
                assigned, an under_review contract pushed to signed or back to
                negotiating without the agent's review, or the record changed
                concurrently.
        """
        async with self._operation("advance_stage", contract_id=contract_id):
            contract = await self._load(tenant_id, contract_id)
            target = validate_transition(contract.deal_stage, target_stage)
            if (
                contract.deal_stage == ContractStage.UNDER_REVIEW
                and target in _REVIEW_ONLY_TARGETS
            ):
                raise PreconditionViolationError(
                    f"Moving an under_review contract to {target.value} requires the "
                    f"assigned agent's review"
                )
            if target == ContractStage.UNDER_REVIEW and contract.agent_id is None:
                raise PreconditionViolationError(
                    "A contract needs an assigned agent before it can go under review"
                )

            updated = await self._write(
                tenant_id,
                contract,
                ContractChanges(deal_stage=target),
                WorkflowStepCreate(
                    step_type=WorkflowStepType.STAGE_ADVANCED,
                    from_stage=contract.deal_stage,
                    to_stage=target,
                    actor_id=actor_id,
                    notes=note,
                ),
                _REOPEN_PITCH if target == ContractStage.REJECTED else None,
            )
        return updated

    async def review_contract(
        self,
        tenant_id: str,
        contract_id: str,
        actor_id: str,
        action: ReviewAction | str,
        note: str | None = None,
    ) -> ContractRead:
        """Agent review: accept -> signed, modify -> negotiating, reject -> rejected.

        Only the assigned agent (the creating team's counterparty) may review,
        and only while the contract is under review. ``modify`` counts as a
        new negotiation round.

        Raises:
            IllegalTransitionError: The action's target is not legal from the
                current stage (e.g. modify after the contract was accepted).
            PreconditionViolationError: Unknown action, not under review, or
                wrong actor.
        """
        try:
            review = ReviewAction(action)
        except ValueError:
            raise PreconditionViolationError(f"Unknown review action: {action}")

        async with self._operation("review_contract", contract_id=contract_id):
            contract = await self._load(tenant_id, contract_id)
            target = validate_transition(contract.deal_stage, review_target(review))
            if contract.deal_stage != ContractStage.UNDER_REVIEW:
                raise PreconditionViolationError(
                    f"Contract can only be reviewed while under_review "
                    f"(current stage: {contract.deal_stage.value})"
                )
            if contract.agent_id is None or actor_id != contract.agent_id:
                raise PreconditionViolationError(
                    "Only the contract's assigned agent can review it"
                )

            updated = await self._write(
                tenant_id,
                contract,
                ContractChanges(
                    deal_stage=target,
                    negotiation_rounds=(
                        contract.negotiation_rounds + 1
                        if review == ReviewAction.MODIFY
                        else None
                    ),
                ),
                WorkflowStepCreate(
                    step_type=_REVIEW_STEP_TYPES[review],
                    from_stage=contract.deal_stage,
                    to_stage=target,
                    actor_id=actor_id,
                    notes=note,
                ),
                _REOPEN_PITCH if target == ContractStage.REJECTED else None,
            )

        await self._notifier.notify(
            tenant_id,
            updated.team_id,
            NotificationKind.CONTRACT_REVIEWED,
            f"Agent {review.value}ed the contract" if review != ReviewAction.MODIFY
            else "Agent requested modifications",
            note,
            {"contract_id": updated.id, "action": review.value, "deal_stage": updated.deal_stage.value},
        )
        return updated

    async def sign_contract(
        self,
        tenant_id: str,
        contract_id: str,
        party: SigningParty | str,
        signer_id: str,
        signature_image: bytes | None = None,
        mime_type: str = "image/png",
    ) -> ContractRead:
        """Fill a signer slot; the team's confirmation finalizes the contract.

        The agent signs first. The team can only confirm once the agent slot
        is filled. Confirmation moves the contract signed -> completed,
        computes the financial summary (service charge), marks the pitch
        completed, and records the transfer on the team timeline.

        Raises:
            PreconditionViolationError: Not in the signed stage, signer is not
                the party on the contract, or the image was rejected.
            InvalidSignatureOrderError: Team before agent, or a slot already
                filled.
            UpstreamFailureError: Signature storage or persistence failed.
        """
        try:
            signing_party = SigningParty(party)
        except ValueError:
            raise PreconditionViolationError(f"Unknown signing party: {party}")

        async with self._operation("sign_contract", contract_id=contract_id, party=signing_party.value):
            contract = await self._load(tenant_id, contract_id)
            if contract.deal_stage != ContractStage.SIGNED:
                raise PreconditionViolationError(
                    f"Contract is not awaiting signatures (current stage: {contract.deal_stage.value})"
                )
            expected_signer = (
                contract.agent_id if signing_party == SigningParty.AGENT else contract.team_id
            )
            if signer_id != expected_signer:
                raise PreconditionViolationError(
                    f"Signer is not the contract's {signing_party.value}"
                )

            signatures = contract.signatures
            if signatures.slot(signing_party) is not None:
                raise InvalidSignatureOrderError(
                    f"Invalid signature order: {signing_party.value} has already signed"
                )
            if signing_party == SigningParty.TEAM and signatures.agent is None:
                raise InvalidSignatureOrderError(
                    "Invalid signature order: team cannot confirm before the agent has signed"
                )

            image_url = None
            if signature_image is not None:
                image_url = await self._store_signature(
                    tenant_id, contract.id, signing_party, signature_image, mime_type
                )

            now = _utcnow()
            signatures = signatures.with_signature(
                signing_party,
                PartySignature(signer_id=signer_id, signed_at=now, image_url=image_url),
            )

            if signing_party == SigningParty.AGENT:
                updated = await self._write(
                    tenant_id,
                    contract,
                    ContractChanges(signatures=signatures),
                    WorkflowStepCreate(
                        step_type=WorkflowStepType.SIGNED,
                        from_stage=contract.deal_stage,
                        to_stage=contract.deal_stage,
                        actor_id=signer_id,
                        notes="Agent signed",
                    ),
                )
            else:
                pitch = (
                    await self._repo.get_pitch(tenant_id, contract.pitch_id)
                    if contract.contract_value is None
                    else None
                )
                summary = self._financial_summary(contract, pitch, now)
                updated = await self._write(
                    tenant_id,
                    contract,
                    ContractChanges(
                        deal_stage=next_stage(contract.deal_stage),
                        signatures=signatures,
                        financial_summary=summary,
                    ),
                    WorkflowStepCreate(
                        step_type=WorkflowStepType.FINALIZED,
                        from_stage=contract.deal_stage,
                        to_stage=next_stage(contract.deal_stage),
                        actor_id=signer_id,
                        notes=(
                            f"Contract finalized. Service charge: "
                            f"{summary.service_charge_amount:.2f} {summary.currency}"
                        ),
                    ),
                    PitchUpdate(
                        status=PitchStatus.COMPLETED,
                        deal_stage=PitchDealStage.COMPLETED,
                        contract_finalized=True,
                        contract_finalized_at=now,
                    ),
                )

        if signing_party == SigningParty.AGENT:
            await self._notifier.notify(
                tenant_id,
                updated.team_id,
                NotificationKind.CONTRACT_SIGNED,
                "Agent signed the contract",
                "Confirm the signature to finalize the transfer.",
                {"contract_id": updated.id},
            )
        else:
            for recipient in (updated.agent_id, updated.team_id):
                await self._notifier.notify(
                    tenant_id,
                    recipient,
                    NotificationKind.CONTRACT_COMPLETED,
                    "Contract finalized",
                    "Both parties have signed. The transfer is complete.",
                    {"contract_id": updated.id},
                )
            if self._timeline is not None:
                await self._timeline.record_transfer_completed(tenant_id, updated)
        return updated

    async def _store_signature(
        self,
        tenant_id: str,
        contract_id: str,
        party: SigningParty,
        data: bytes,
        mime_type: str,
    ) -> str:
        if self._signatures is None:
            raise PreconditionViolationError("Signature image storage is not configured")
        key = signature_key(tenant_id, contract_id, party.value, mime_type)
        try:
            return await self._signatures.put(key, data, mime_type)
        except ValueError as exc:
            raise PreconditionViolationError(str(exc)) from exc
        except OSError as exc:
            raise UpstreamFailureError("store_signature", exc) from exc

    # ── Negotiation thread ──────────────────────────────────────────────────

    async def post_message(
        self,
        tenant_id: str,
        contract_id: str,
        sender_id: str,
        data: ContractMessageCreate,
    ) -> ContractMessageRead:
        """Add a message to the negotiation thread and notify the other party.

        Raises:
            PreconditionViolationError: Sender is neither the team nor the
                assigned agent, or the contract is closed.
        """
        async with self._operation("post_message", contract_id=contract_id):
            contract = await self._load(tenant_id, contract_id)
            if sender_id not in (contract.team_id, contract.agent_id):
                raise PreconditionViolationError(
                    "Only the creating team or the assigned agent can post messages"
                )
            if is_terminal(contract.deal_stage):
                raise PreconditionViolationError(
                    f"Contract is closed (stage: {contract.deal_stage.value})"
                )
            message = await self._repo.add_message(tenant_id, contract.id, sender_id, data)

        recipient = contract.agent_id if sender_id == contract.team_id else contract.team_id
        await self._notifier.notify(
            tenant_id,
            recipient,
            NotificationKind.CONTRACT_MESSAGE,
            "New contract message",
            data.content[:200],
            {"contract_id": contract.id, "message_id": message.id},
        )
        return message

    async def list_messages(
        self, tenant_id: str, contract_id: str
    ) -> list[ContractMessageRead]:
        async with self._operation("list_messages", contract_id=contract_id):
            contract = await self._load(tenant_id, contract_id)
            return await self._repo.list_messages(tenant_id, contract.id)

    # ── Expiry ──────────────────────────────────────────────────────────────

    async def _expire(
        self,
        tenant_id: str,
        contract: ContractRead,
        actor_id: str | None,
        reason: str | None,
    ) -> ContractRead:
        if contract.deal_stage not in EXPIRABLE_STAGES:
            raise IllegalTransitionError(
                contract.deal_stage, ContractStage.EXPIRED, legal_actions(contract.deal_stage)
            )
        updated = await self._write(
            tenant_id,
            contract,
            ContractChanges(deal_stage=ContractStage.EXPIRED),
            WorkflowStepCreate(
                step_type=WorkflowStepType.EXPIRED,
                from_stage=contract.deal_stage,
                to_stage=ContractStage.EXPIRED,
                actor_id=actor_id,
                notes=reason,
            ),
            _REOPEN_PITCH,
        )
        for recipient in (updated.team_id, updated.agent_id):
            await self._notifier.notify(
                tenant_id,
                recipient,
                NotificationKind.CONTRACT_EXPIRED,
                "Contract expired",
                reason,
                {"contract_id": updated.id},
            )
        return updated

    async def expire_contract(
        self,
        tenant_id: str,
        contract_id: str,
        actor_id: str | None = None,
        reason: str | None = None,
    ) -> ContractRead:
        """Manually expire a contract that has not reached signing.

        Raises:
            IllegalTransitionError: Contract is signed or already closed.
        """
        async with self._operation("expire_contract", contract_id=contract_id):
            contract = await self._load(tenant_id, contract_id)
            return await self._expire(tenant_id, contract, actor_id, reason)

    async def expire_overdue(
        self, tenant_id: str, now: datetime | None = None
    ) -> list[ContractRead]:
        """Expire every contract whose expiry date or response deadline has passed.

        Contracts that changed underneath the sweep are skipped and logged,
        not failed; the next sweep picks them up if they are still overdue.

        Returns:
            The contracts that were expired.
        """
        now = now or _utcnow()
        expired: list[ContractRead] = []
        async with self._operation("expire_overdue"):
            candidates = await self._repo.list_expirable(tenant_id, now)
            for contract in candidates:
                try:
                    expired.append(
                        await self._expire(tenant_id, contract, None, "Response deadline passed")
                    )
                except (IllegalTransitionError, PreconditionViolationError) as exc:
                    logger.info(
                        "contract.expiry_skipped",
                        tenant_id=tenant_id,
                        contract_id=contract.id,
                        reason=exc.message,
                    )
        logger.info(
            "contract.expiry_sweep_completed",
            tenant_id=tenant_id,
            candidates=len(candidates),
            expired=len(expired),
        )
        return expired

    # ── Reads ───────────────────────────────────────────────────────────────

    async def get_contract(self, tenant_id: str, contract_id: str) -> ContractRead:
        async with self._operation("get_contract", contract_id=contract_id):
            return await self._load(tenant_id, contract_id)

    async def list_contracts(
        self, tenant_id: str, filters: ContractFilter | None = None
    ) -> list[ContractRead]:
        async with self._operation("list_contracts"):
            return await self._repo.list_contracts(tenant_id, filters)

    async def get_history(self, tenant_id: str, contract_id: str) -> list[WorkflowStepRead]:
        """Workflow steps of a contract, oldest first."""
        async with self._operation("get_history", contract_id=contract_id):
            contract = await self._load(tenant_id, contract_id)
            return await self._repo.list_steps(tenant_id, contract.id)

    async def get_progress(self, tenant_id: str, contract_id: str) -> ContractProgress:
        """Position on the stage path and the legal next moves."""
        async with self._operation("get_progress", contract_id=contract_id):
            contract = await self._load(tenant_id, contract_id)
        stage = contract.deal_stage
        return ContractProgress(
            contract_id=contract.id,
            deal_stage=stage,
            status=status_for(stage),
            position=stage_position(stage),
            total_stages=len(STAGE_ORDER),
            can_advance=can_advance(stage),
            next_stage=next_stage(stage),
            legal_actions=sorted(legal_actions(stage), key=lambda s: s.value),
            is_terminal=is_terminal(stage),
        )

    async def get_pipeline(
        self, tenant_id: str, filters: ContractFilter | None = None
    ) -> ContractPipeline:
        async with self._operation("get_pipeline"):
            contracts = await self._repo.list_contracts(tenant_id, filters)
        return build_pipeline(contracts)
