"""Shared test fixtures: in-memory repository doubles and a wired ContractWorkflow.

Provides:
- InMemoryContractRepository / InMemoryTimelineRepository /
  InMemoryNotificationRepository: dict-backed doubles honouring the same
  contracts as the SQLAlchemy repositories (None on missing reads,
  version-guarded apply_transition, auto-pinned achievements)
- InMemorySignatureStore: SignatureStore that keeps blobs in a dict
- ContractDriver: moves a fresh contract to a given stage through the
  public workflow operations
- Fixtures for tenant/team/agent IDs, repositories and the workflow

No fixture needs Postgres or Redis.
"""

from __future__ import annotations

import uuid
from datetime import datetime, timezone

import pytest

from src.app.config import Settings
from src.app.contracts.schemas import (
    ContractChanges,
    ContractCreate,
    ContractFilter,
    ContractMessageCreate,
    ContractMessageRead,
    ContractRead,
    PitchCreate,
    PitchFilter,
    PitchRead,
    PitchUpdate,
    WorkflowStepCreate,
    WorkflowStepRead,
)
from src.app.contracts.stages import (
    EXPIRABLE_STAGES,
    ContractStage,
    ReviewAction,
    SigningParty,
    status_for,
)
from src.app.contracts.workflow import ContractWorkflow
from src.app.notifications.service import (
    NotificationCreate,
    NotificationRead,
    NotificationService,
)
from src.app.storage.signatures import SignatureStore
from src.app.timeline.recorder import TimelineRecorder
from src.app.timeline.schemas import (
    TimelineEventCreate,
    TimelineEventRead,
    TimelineEventType,
    TimelineFilter,
)

_EPOCH = datetime.min.replace(tzinfo=timezone.utc)


def _now() -> datetime:
    return datetime.now(timezone.utc)


# ── In-Memory Test Doubles ───────────────────────────────────────────────────


class InMemoryContractRepository:
    """In-memory ContractRepository for testing without database.

    Set ``write_error`` to make the next create/apply/message write raise it (simulates a
    database failure).
    """

    def __init__(self) -> None:
        self.pitches: dict[str, PitchRead] = {}
        self.contracts: dict[str, ContractRead] = {}
        self.steps: list[WorkflowStepRead] = []
        self.messages: list[ContractMessageRead] = []
        self.write_error: Exception | None = None

    def _raise_if_failing(self) -> None:
        if self.write_error is not None:
            error, self.write_error = self.write_error, None
            raise error

    def _append_step(self, contract_id: str, step: WorkflowStepCreate) -> None:
        self.steps.append(
            WorkflowStepRead(
                id=str(uuid.uuid4()),
                contract_id=contract_id,
                created_at=_now(),
                **step.model_dump(),
            )
        )

    def _apply_pitch(self, pitch_id: str, data: PitchUpdate | None) -> None:
        pitch = self.pitches.get(pitch_id)
        if pitch is None or data is None:
            return
        changes = {k: v for k, v in data.model_dump().items() if v is not None}
        self.pitches[pitch_id] = pitch.model_copy(update={**changes, "updated_at": _now()})

    async def create_pitch(self, tenant_id: str, data: PitchCreate) -> PitchRead:
        now = _now()
        pitch = PitchRead(
            id=str(uuid.uuid4()),
            tenant_id=tenant_id,
            created_at=now,
            updated_at=now,
            **data.model_dump(),
        )
        self.pitches[pitch.id] = pitch
        return pitch

    async def get_pitch(self, tenant_id: str, pitch_id: str) -> PitchRead | None:
        pitch = self.pitches.get(pitch_id)
        if pitch and pitch.tenant_id == tenant_id:
            return pitch
        return None

    async def list_pitches(
        self, tenant_id: str, filters: PitchFilter | None = None
    ) -> list[PitchRead]:
        result = [p for p in self.pitches.values() if p.tenant_id == tenant_id]
        if filters:
            if filters.team_id:
                result = [p for p in result if p.team_id == filters.team_id]
            if filters.status:
                result = [p for p in result if p.status == filters.status]
        return result

    async def create_contract(
        self,
        tenant_id: str,
        data: ContractCreate,
        *,
        player_id: str | None,
        step: WorkflowStepCreate,
        pitch_update: PitchUpdate | None = None,
    ) -> ContractRead:
        self._raise_if_failing()
        now = _now()
        contract = ContractRead(
            id=str(uuid.uuid4()),
            tenant_id=tenant_id,
            pitch_id=data.pitch_id,
            team_id=data.team_id,
            player_id=player_id,
            contract_value=data.contract_value,
            currency=(data.currency or "USD").upper(),
            terms=data.terms,
            priority=data.priority,
            expires_at=data.expires_at,
            created_by=data.created_by,
            last_activity_at=now,
            created_at=now,
            updated_at=now,
        )
        self.contracts[contract.id] = contract
        self._append_step(contract.id, step)
        self._apply_pitch(data.pitch_id, pitch_update)
        return contract

    async def get_contract(self, tenant_id: str, contract_id: str) -> ContractRead | None:
        contract = self.contracts.get(contract_id)
        if contract and contract.tenant_id == tenant_id:
            return contract
        return None

    async def list_contracts(
        self, tenant_id: str, filters: ContractFilter | None = None
    ) -> list[ContractRead]:
        result = [c for c in self.contracts.values() if c.tenant_id == tenant_id]
        if filters:
            if filters.status:
                result = [c for c in result if c.status == filters.status]
            if filters.deal_stage:
                result = [c for c in result if c.deal_stage == filters.deal_stage]
            if filters.team_id:
                result = [c for c in result if c.team_id == filters.team_id]
            if filters.agent_id:
                result = [c for c in result if c.agent_id == filters.agent_id]
            if filters.pitch_id:
                result = [c for c in result if c.pitch_id == filters.pitch_id]
            if filters.priority:
                result = [c for c in result if c.priority == filters.priority]
        return sorted(result, key=lambda c: c.last_activity_at or _EPOCH, reverse=True)

    async def list_expirable(self, tenant_id: str, now: datetime) -> list[ContractRead]:
        return [
            c
            for c in self.contracts.values()
            if c.tenant_id == tenant_id
            and c.deal_stage in EXPIRABLE_STAGES
            and (
                (c.expires_at is not None and c.expires_at < now)
                or (c.response_deadline is not None and c.response_deadline < now)
            )
        ]

    async def apply_transition(
        self,
        tenant_id: str,
        contract_id: str,
        expected_version: int,
        changes: ContractChanges,
        step: WorkflowStepCreate,
        pitch_update: PitchUpdate | None = None,
    ) -> ContractRead | None:
        self._raise_if_failing()
        current = self.contracts.get(contract_id)
        if current is None or current.tenant_id != tenant_id or current.version != expected_version:
            return None

        now = _now()
        update = {"updated_at": now, "last_activity_at": now, "version": current.version + 1}
        if changes.deal_stage is not None:
            update["deal_stage"] = changes.deal_stage
            update["status"] = status_for(changes.deal_stage)
        for field in (
            "agent_id",
            "signatures",
            "financial_summary",
            "negotiation_rounds",
            "response_deadline",
            "terms",
            "contract_value",
        ):
            value = getattr(changes, field)
            if value is not None:
                update[field] = value
        if changes.currency is not None:
            update["currency"] = changes.currency.upper()

        updated = current.model_copy(update=update)
        self.contracts[contract_id] = updated
        self._append_step(contract_id, step)
        self._apply_pitch(updated.pitch_id, pitch_update)
        return updated

    async def list_steps(self, tenant_id: str, contract_id: str) -> list[WorkflowStepRead]:
        return [s for s in self.steps if s.contract_id == contract_id]

    async def add_message(
        self,
        tenant_id: str,
        contract_id: str,
        sender_id: str,
        data: ContractMessageCreate,
    ) -> ContractMessageRead:
        self._raise_if_failing()
        message = ContractMessageRead(
            id=str(uuid.uuid4()),
            contract_id=contract_id,
            sender_id=sender_id,
            created_at=_now(),
            **data.model_dump(),
        )
        self.messages.append(message)
        return message

    async def list_messages(self, tenant_id: str, contract_id: str) -> list[ContractMessageRead]:
        return [m for m in self.messages if m.contract_id == contract_id]


class InMemoryTimelineRepository:
    """In-memory TimelineRepository. Achievements auto-pin like the real one."""

    def __init__(self) -> None:
        self.events: dict[str, TimelineEventRead] = {}

    async def create_event(self, tenant_id: str, data: TimelineEventCreate) -> TimelineEventRead:
        now = _now()
        pinned = data.is_pinned or data.event_type == TimelineEventType.ACHIEVEMENT
        event = TimelineEventRead(
            id=str(uuid.uuid4()),
            tenant_id=tenant_id,
            created_at=now,
            updated_at=now,
            **{**data.model_dump(), "is_pinned": pinned},
        )
        self.events[event.id] = event
        return event

    async def get_event(self, tenant_id: str, event_id: str) -> TimelineEventRead | None:
        event = self.events.get(event_id)
        if event and event.tenant_id == tenant_id:
            return event
        return None

    async def list_events(
        self, tenant_id: str, filters: TimelineFilter | None = None
    ) -> list[TimelineEventRead]:
        result = [e for e in self.events.values() if e.tenant_id == tenant_id]
        if filters:
            if filters.team_id:
                result = [e for e in result if e.team_id == filters.team_id]
            if filters.event_type:
                result = [e for e in result if e.event_type == filters.event_type]
            if filters.player_id:
                result = [e for e in result if e.player_id == filters.player_id]
        return sorted(result, key=lambda e: e.event_date, reverse=True)

    async def toggle_pin(self, tenant_id: str, event_id: str) -> TimelineEventRead:
        event = await self.get_event(tenant_id, event_id)
        if event is None:
            raise ValueError(f"Timeline event not found: {event_id}")
        updated = event.model_copy(update={"is_pinned": not event.is_pinned, "updated_at": _now()})
        self.events[event_id] = updated
        return updated


class InMemoryNotificationRepository:
    def __init__(self) -> None:
        self.notifications: dict[str, NotificationRead] = {}

    async def create(self, tenant_id: str, data: NotificationCreate) -> NotificationRead:
        notification = NotificationRead(
            id=str(uuid.uuid4()),
            tenant_id=tenant_id,
            created_at=_now(),
            **data.model_dump(),
        )
        self.notifications[notification.id] = notification
        return notification

    async def list_for_recipient(
        self, tenant_id: str, recipient_id: str, unread_only: bool = False
    ) -> list[NotificationRead]:
        result = [
            n
            for n in self.notifications.values()
            if n.tenant_id == tenant_id and n.recipient_id == recipient_id
        ]
        if unread_only:
            result = [n for n in result if not n.is_read]
        return sorted(result, key=lambda n: n.created_at or _EPOCH, reverse=True)

    async def mark_read(self, tenant_id: str, notification_id: str) -> NotificationRead:
        notification = self.notifications.get(notification_id)
        if notification is None or notification.tenant_id != tenant_id:
            raise ValueError(f"Notification not found: {notification_id}")
        updated = notification.model_copy(update={"is_read": True})
        self.notifications[notification_id] = updated
        return updated


class InMemorySignatureStore(SignatureStore):
    def __init__(self) -> None:
        self.blobs: dict[str, tuple[bytes, str]] = {}

    async def put(self, key: str, data: bytes, mime_type: str) -> str:
        self.blobs[key] = (data, mime_type)
        return f"memory://{key}"


# ── Contract Driver ──────────────────────────────────────────────────────────


class ContractDriver:
    """Moves a fresh contract to a stage via the public workflow operations."""

    def __init__(
        self, workflow: ContractWorkflow, tenant_id: str, team_id: str, agent_id: str
    ) -> None:
        self.workflow = workflow
        self.tenant_id = tenant_id
        self.team_id = team_id
        self.agent_id = agent_id

    async def pitch(self, **overrides) -> PitchRead:
        data = {
            "team_id": self.team_id,
            "player_id": str(uuid.uuid4()),
            "asking_price": 2_000_000.0,
            "currency": "EUR",
        }
        data.update(overrides)
        return await self.workflow.create_pitch(self.tenant_id, PitchCreate(**data))

    async def draft(self, **overrides) -> ContractRead:
        pitch = await self.pitch()
        data = {"pitch_id": pitch.id, "team_id": self.team_id, "created_by": self.team_id}
        data.update(overrides)
        return await self.workflow.create_contract(self.tenant_id, ContractCreate(**data))

    async def negotiating(self, **overrides) -> ContractRead:
        contract = await self.draft(**overrides)
        return await self.workflow.send_to_agent(
            self.tenant_id, contract.id, self.team_id, self.agent_id
        )

    async def under_review(self, **overrides) -> ContractRead:
        contract = await self.negotiating(**overrides)
        return await self.workflow.advance_stage(
            self.tenant_id, contract.id, ContractStage.UNDER_REVIEW, self.team_id
        )

    async def signed(self, **overrides) -> ContractRead:
        contract = await self.under_review(**overrides)
        return await self.workflow.review_contract(
            self.tenant_id, contract.id, self.agent_id, ReviewAction.ACCEPT
        )

    async def agent_signed(self, **overrides) -> ContractRead:
        contract = await self.signed(**overrides)
        return await self.workflow.sign_contract(
            self.tenant_id, contract.id, SigningParty.AGENT, self.agent_id
        )

    async def completed(self, **overrides) -> ContractRead:
        contract = await self.agent_signed(**overrides)
        return await self.workflow.sign_contract(
            self.tenant_id, contract.id, SigningParty.TEAM, self.team_id
        )


# ── Fixtures ─────────────────────────────────────────────────────────────────


@pytest.fixture
def tenant_id() -> str:
    return str(uuid.uuid4())


@pytest.fixture
def team_id() -> str:
    return str(uuid.uuid4())


@pytest.fixture
def agent_id() -> str:
    return str(uuid.uuid4())


@pytest.fixture
def settings() -> Settings:
    return Settings(_env_file=None)


@pytest.fixture
def contract_repo() -> InMemoryContractRepository:
    return InMemoryContractRepository()


@pytest.fixture
def timeline_repo() -> InMemoryTimelineRepository:
    return InMemoryTimelineRepository()


@pytest.fixture
def notification_repo() -> InMemoryNotificationRepository:
    return InMemoryNotificationRepository()


@pytest.fixture
def signature_store() -> InMemorySignatureStore:
    return InMemorySignatureStore()


@pytest.fixture
def workflow(
    contract_repo: InMemoryContractRepository,
    notification_repo: InMemoryNotificationRepository,
    signature_store: InMemorySignatureStore,
    timeline_repo: InMemoryTimelineRepository,
    settings: Settings,
) -> ContractWorkflow:
    """ContractWorkflow wired to in-memory collaborators."""
    return ContractWorkflow(
        repository=contract_repo,
        notifier=NotificationService(notification_repo),
        signature_store=signature_store,
        timeline_recorder=TimelineRecorder(timeline_repo),
        settings=settings,
    )


@pytest.fixture
def make_driver(tenant_id: str, team_id: str, agent_id: str):
    """Factory binding a ContractDriver to any workflow instance."""

    def _make(workflow: ContractWorkflow) -> ContractDriver:
        return ContractDriver(workflow, tenant_id, team_id, agent_id)

    return _make


@pytest.fixture
def driver(workflow: ContractWorkflow, make_driver) -> ContractDriver:
    return make_driver(workflow)
