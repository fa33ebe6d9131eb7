"""Notification repository and fire-and-forget delivery service.

NotificationService.notify() never raises: delivery problems are logged and
swallowed so a failed notification can never undo or block the workflow
operation that triggered it.
"""

from __future__ import annotations

import uuid
from collections.abc import AsyncGenerator, Callable
from datetime import datetime
from enum import Enum
from typing import Any

import structlog
from pydantic import BaseModel, Field
from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from src.app.notifications.models import NotificationModel

logger = structlog.get_logger(__name__)


class NotificationKind(str, Enum):
    CONTRACT_SENT = "contract_sent"
    CONTRACT_REVIEWED = "contract_reviewed"
    CONTRACT_UPDATED = "contract_updated"
    CONTRACT_MESSAGE = "contract_message"
    CONTRACT_SIGNED = "contract_signed"
    CONTRACT_COMPLETED = "contract_completed"
    CONTRACT_EXPIRED = "contract_expired"
    SYSTEM = "system"


class NotificationCreate(BaseModel):
    recipient_id: str
    kind: NotificationKind = NotificationKind.SYSTEM
    title: str
    message: str | None = None
    data: dict[str, Any] = Field(default_factory=dict)


class NotificationRead(NotificationCreate):
    id: str
    tenant_id: str
    is_read: bool = False
    created_at: datetime | None = None


def _model_to_notification(model: NotificationModel) -> NotificationRead:
    """Convert NotificationModel to NotificationRead schema."""
    return NotificationRead(
        id=str(model.id),
        tenant_id=str(model.tenant_id),
        recipient_id=str(model.recipient_id),
        kind=model.kind,
        title=model.title,
        message=model.message,
        data=model.data or {},
        is_read=bool(model.is_read),
        created_at=model.created_at,
    )


# ── Repository ──────────────────────────────────────────────────────────────


class NotificationRepository:
    """Async persistence for notifications.

    Args:
        session_factory: Async callable that yields AsyncSession instances.
    """

    def __init__(
        self, session_factory: Callable[..., AsyncGenerator[AsyncSession, None]]
    ) -> None:
        self._session_factory = session_factory

    async def create(self, tenant_id: str, data: NotificationCreate) -> NotificationRead:
        async for session in self._session_factory():
            model = NotificationModel(
                tenant_id=uuid.UUID(tenant_id),
                recipient_id=uuid.UUID(data.recipient_id),
                kind=data.kind.value,
                title=data.title,
                message=data.message,
                data=data.data,
            )
            session.add(model)
            await session.commit()
            await session.refresh(model)
            return _model_to_notification(model)

    async def list_for_recipient(
        self, tenant_id: str, recipient_id: str, unread_only: bool = False
    ) -> list[NotificationRead]:
        """Notifications for one recipient, newest first."""
        async for session in self._session_factory():
            stmt = select(NotificationModel).where(
                NotificationModel.tenant_id == uuid.UUID(tenant_id),
                NotificationModel.recipient_id == uuid.UUID(recipient_id),
            )
            if unread_only:
                stmt = stmt.where(NotificationModel.is_read == False)  # noqa: E712
            stmt = stmt.order_by(NotificationModel.created_at.desc())
            result = await session.execute(stmt)
            return [_model_to_notification(m) for m in result.scalars().all()]

    async def mark_read(self, tenant_id: str, notification_id: str) -> NotificationRead:
        """Mark a notification as read.

        Raises:
            ValueError: If the notification does not exist.
        """
        async for session in self._session_factory():
            stmt = (
                update(NotificationModel)
                .where(
                    NotificationModel.tenant_id == uuid.UUID(tenant_id),
                    NotificationModel.id == uuid.UUID(notification_id),
                )
                .values(is_read=True)
                .returning(NotificationModel)
            )
            result = await session.execute(stmt)
            model = result.scalar_one_or_none()
            if model is None:
                raise ValueError(f"Notification not found: {notification_id}")
            await session.commit()
            return _model_to_notification(model)


# ── Service ─────────────────────────────────────────────────────────────────


class NotificationService:
    """Fire-and-forget notification delivery.

    Args:
        repository: Persistence for notifications. When None, notifications
            are only logged.
    """

    def __init__(self, repository: NotificationRepository | None = None) -> None:
        self._repo = repository

    async def notify(
        self,
        tenant_id: str,
        recipient_id: str | None,
        kind: NotificationKind,
        title: str,
        message: str | None = None,
        data: dict[str, Any] | None = None,
    ) -> None:
        """Record a notification for ``recipient_id``. Never raises."""
        if not recipient_id:
            logger.debug("notification.skipped_no_recipient", kind=kind.value, title=title)
            return

        try:
            logger.info(
                "notification.sent",
                tenant_id=tenant_id,
                recipient_id=recipient_id,
                kind=kind.value,
                title=title,
            )
            if self._repo is not None:
                await self._repo.create(
                    tenant_id,
                    NotificationCreate(
                        recipient_id=recipient_id,
                        kind=kind,
                        title=title,
                        message=message,
                        data=data or {},
                    ),
                )
        except Exception:
            logger.warning(
                "notification.delivery_failed",
                tenant_id=tenant_id,
                recipient_id=recipient_id,
                kind=kind.value,
                exc_info=True,
            )
