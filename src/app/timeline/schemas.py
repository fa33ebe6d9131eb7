"""Pydantic schemas for team timeline events."""

from __future__ import annotations

from datetime import date, datetime
from enum import Enum
from typing import Any

from pydantic import BaseModel, Field


class TimelineEventType(str, Enum):
    """Categories of events on a team's timeline."""

    MATCH = "match"
    TRANSFER = "transfer"
    PLAYER = "player"
    TEAM = "team"
    ACHIEVEMENT = "achievement"


class TimelinePeriod(str, Enum):
    """Relative windows for filtering events."""

    WEEK = "week"
    MONTH = "month"
    SEASON = "season"


class TimelineEventCreate(BaseModel):
    """Schema for recording a timeline event.

    Achievement events are pinned on creation regardless of ``is_pinned``.
    """

    team_id: str
    event_type: TimelineEventType
    title: str = Field(min_length=1, max_length=300)
    description: str | None = None
    event_date: date
    player_id: str | None = None
    contract_id: str | None = None
    is_pinned: bool = False
    metadata: dict[str, Any] = Field(default_factory=dict)
    created_by: str | None = None


class TimelineEventRead(TimelineEventCreate):
    """Full timeline event representation."""

    id: str
    tenant_id: str
    created_at: datetime | None = None
    updated_at: datetime | None = None


class TimelineFilter(BaseModel):
    """Storage-level filter criteria for listing events."""

    team_id: str | None = None
    event_type: TimelineEventType | None = None
    player_id: str | None = None
    date_from: date | None = None
    date_to: date | None = None
