"""REST API endpoints for the notification inbox."""

from __future__ import annotations

import uuid
from typing import Any

from fastapi import APIRouter, Depends, HTTPException, Query, Request, status
from pydantic import BaseModel, Field

from src.app.api.deps import get_actor_id, get_tenant
from src.app.core.tenant import TenantContext
from src.app.notifications.service import NotificationRead

router = APIRouter(prefix="/notifications", tags=["notifications"])


class NotificationResponse(BaseModel):
    id: str
    recipient_id: str
    kind: str
    title: str
    message: str | None = None
    data: dict[str, Any] = Field(default_factory=dict)
    is_read: bool = False
    created_at: str | None = None


def _get_notification_repository(request: Request) -> Any:
    """Retrieve NotificationRepository from app.state, 503 if not available."""
    repo = getattr(request.app.state, "notification_repository", None)
    if repo is None:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Notifications not initialized",
        )
    return repo


def _notification_to_response(notification: NotificationRead) -> NotificationResponse:
    return NotificationResponse(
        id=notification.id,
        recipient_id=notification.recipient_id,
        kind=notification.kind.value,
        title=notification.title,
        message=notification.message,
        data=notification.data,
        is_read=notification.is_read,
        created_at=notification.created_at.isoformat() if notification.created_at else None,
    )


@router.get("", response_model=list[NotificationResponse])
async def list_notifications(
    request: Request,
    recipient_id: str | None = Query(default=None),
    unread_only: bool = Query(default=False),
    actor_id: str = Depends(get_actor_id),
    tenant: TenantContext = Depends(get_tenant),
) -> list[NotificationResponse]:
    """Notifications for a recipient (defaults to the caller), newest first."""
    repo = _get_notification_repository(request)
    recipient = recipient_id or actor_id
    try:
        uuid.UUID(recipient)
    except ValueError:
        raise HTTPException(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            detail={"code": "precondition_violation", "message": "recipient_id must be a valid UUID"},
        )
    notifications = await repo.list_for_recipient(
        tenant.tenant_id, recipient, unread_only=unread_only
    )
    return [_notification_to_response(n) for n in notifications]


@router.post("/{notification_id}/read", response_model=NotificationResponse)
async def mark_read(
    notification_id: str,
    request: Request,
    tenant: TenantContext = Depends(get_tenant),
) -> NotificationResponse:
    """Mark a notification as read."""
    repo = _get_notification_repository(request)
    try:
        notification = await repo.mark_read(tenant.tenant_id, notification_id)
    except ValueError:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail={"code": "not_found", "message": f"Notification not found: {notification_id}"},
        )
    return _notification_to_response(notification)
