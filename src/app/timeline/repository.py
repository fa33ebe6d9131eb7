"""Timeline repository -- async CRUD for team timeline events.

All methods take tenant_id as first argument for tenant-scoped queries.
Achievement events are pinned on creation.
"""

from __future__ import annotations

import uuid
from collections.abc import AsyncGenerator, Callable

import structlog
from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from src.app.timeline.models import TimelineEventModel
from src.app.timeline.schemas import (
    TimelineEventCreate,
    TimelineEventRead,
    TimelineEventType,
    TimelineFilter,
)

logger = structlog.get_logger(__name__)


def _model_to_event(model: TimelineEventModel) -> TimelineEventRead:
    """Convert TimelineEventModel to TimelineEventRead schema."""
    return TimelineEventRead(
        id=str(model.id),
        tenant_id=str(model.tenant_id),
        team_id=str(model.team_id),
        event_type=model.event_type,
        title=model.title,
        description=model.description,
        event_date=model.event_date,
        player_id=str(model.player_id) if model.player_id else None,
        contract_id=str(model.contract_id) if model.contract_id else None,
        is_pinned=bool(model.is_pinned),
        metadata=model.metadata_json or {},
        created_by=str(model.created_by) if model.created_by else None,
        created_at=model.created_at,
        updated_at=model.updated_at,
    )


class TimelineRepository:
    """Async CRUD operations for timeline events.

    Args:
        session_factory: Async callable that yields AsyncSession instances.
    """

    def __init__(
        self, session_factory: Callable[..., AsyncGenerator[AsyncSession, None]]
    ) -> None:
        self._session_factory = session_factory

    async def create_event(
        self, tenant_id: str, data: TimelineEventCreate
    ) -> TimelineEventRead:
        """Create a timeline event. Achievements are always pinned.

        Args:
            tenant_id: Tenant UUID string.
            data: TimelineEventCreate schema.

        Returns:
            TimelineEventRead with all persisted fields.
        """
        pinned = data.is_pinned or data.event_type == TimelineEventType.ACHIEVEMENT
        async for session in self._session_factory():
            model = TimelineEventModel(
                tenant_id=uuid.UUID(tenant_id),
                team_id=uuid.UUID(data.team_id),
                event_type=data.event_type.value,
                title=data.title,
                description=data.description,
                event_date=data.event_date,
                player_id=uuid.UUID(data.player_id) if data.player_id else None,
                contract_id=uuid.UUID(data.contract_id) if data.contract_id else None,
                is_pinned=pinned,
                metadata_json=data.metadata,
                created_by=uuid.UUID(data.created_by) if data.created_by else None,
            )
            session.add(model)
            await session.commit()
            await session.refresh(model)
            return _model_to_event(model)

    async def get_event(
        self, tenant_id: str, event_id: str
    ) -> TimelineEventRead | None:
        """Get an event by ID, None if not found."""
        async for session in self._session_factory():
            stmt = select(TimelineEventModel).where(
                TimelineEventModel.tenant_id == uuid.UUID(tenant_id),
                TimelineEventModel.id == uuid.UUID(event_id),
            )
            result = await session.execute(stmt)
            model = result.scalar_one_or_none()
            if model is None:
                return None
            return _model_to_event(model)

    async def list_events(
        self, tenant_id: str, filters: TimelineFilter | None = None
    ) -> list[TimelineEventRead]:
        """List events matching storage-level filters, newest event_date first."""
        async for session in self._session_factory():
            stmt = select(TimelineEventModel).where(
                TimelineEventModel.tenant_id == uuid.UUID(tenant_id)
            )
            if filters is not None:
                if filters.team_id:
                    stmt = stmt.where(TimelineEventModel.team_id == uuid.UUID(filters.team_id))
                if filters.event_type:
                    stmt = stmt.where(TimelineEventModel.event_type == filters.event_type.value)
                if filters.player_id:
                    stmt = stmt.where(TimelineEventModel.player_id == uuid.UUID(filters.player_id))
                if filters.date_from:
                    stmt = stmt.where(TimelineEventModel.event_date >= filters.date_from)
                if filters.date_to:
                    stmt = stmt.where(TimelineEventModel.event_date <= filters.date_to)
            stmt = stmt.order_by(TimelineEventModel.event_date.desc())
            result = await session.execute(stmt)
            return [_model_to_event(m) for m in result.scalars().all()]

    async def toggle_pin(self, tenant_id: str, event_id: str) -> TimelineEventRead:
        """Flip the pinned flag of an event.

        Raises:
            ValueError: If the event does not exist.
        """
        async for session in self._session_factory():
            stmt = (
                update(TimelineEventModel)
                .where(
                    TimelineEventModel.tenant_id == uuid.UUID(tenant_id),
                    TimelineEventModel.id == uuid.UUID(event_id),
                )
                .values(is_pinned=~TimelineEventModel.is_pinned)
                .returning(TimelineEventModel)
            )
            result = await session.execute(stmt)
            model = result.scalar_one_or_none()
            if model is None:
                raise ValueError(f"Timeline event not found: {event_id}")
            await session.commit()
            logger.info(
                "timeline.pin_toggled",
                tenant_id=tenant_id,
                event_id=event_id,
                is_pinned=model.is_pinned,
            )
            return _model_to_event(model)
