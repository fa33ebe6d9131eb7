"""Unit tests for timeline season grouping, ordering and view filters."""

from __future__ import annotations

import uuid
from datetime import date, datetime, timedelta, timezone

import pytest

from src.app.timeline.schemas import TimelineEventRead, TimelineEventType, TimelinePeriod
from src.app.timeline.seasons import (
    filter_events,
    group_by_season,
    season_key_of,
    sort_events,
)

TEAM_ID = str(uuid.uuid4())


def _event(
    event_date: date,
    *,
    title: str = "Event",
    event_type: TimelineEventType = TimelineEventType.MATCH,
    pinned: bool = False,
    description: str | None = None,
    player_id: str | None = None,
    created_at: datetime | None = None,
) -> TimelineEventRead:
    return TimelineEventRead(
        id=str(uuid.uuid4()),
        tenant_id="t-1",
        team_id=TEAM_ID,
        event_type=event_type,
        title=title,
        description=description,
        event_date=event_date,
        player_id=player_id,
        is_pinned=pinned,
        created_at=created_at or datetime(2024, 1, 1, tzinfo=timezone.utc),
    )


class TestSeasonKey:
    @pytest.mark.parametrize(
        ("value", "expected"),
        [
            (date(2023, 7, 31), "2022/2023"),
            (date(2023, 8, 1), "2023/2024"),
            (date(2024, 1, 15), "2023/2024"),
            (date(2024, 5, 31), "2023/2024"),
            (datetime(2024, 12, 31, 23, 0, tzinfo=timezone.utc), "2024/2025"),
        ],
    )
    def test_boundaries(self, value, expected) -> None:
        assert season_key_of(value) == expected


class TestSortEvents:
    def test_pinned_first_then_newest(self) -> None:
        old_pinned = _event(date(2020, 1, 1), title="trophy", pinned=True)
        newest = _event(date(2024, 3, 1), title="newest")
        middle = _event(date(2023, 3, 1), title="middle")

        ordered = sort_events([middle, old_pinned, newest])
        assert [e.title for e in ordered] == ["trophy", "newest", "middle"]

    def test_same_day_falls_back_to_created_at(self) -> None:
        day = date(2024, 3, 1)
        early = _event(day, title="early", created_at=datetime(2024, 3, 1, 9, tzinfo=timezone.utc))
        late = _event(day, title="late", created_at=datetime(2024, 3, 1, 18, tzinfo=timezone.utc))
        assert [e.title for e in sort_events([early, late])] == ["late", "early"]


class TestGroupBySeason:
    def test_seasons_newest_first_with_pinned_leading(self) -> None:
        events = [
            _event(date(2022, 9, 1), title="a"),
            _event(date(2023, 10, 1), title="b"),
            _event(date(2023, 8, 15), title="c", pinned=True),
            _event(date(2023, 7, 1), title="d"),
        ]
        grouped = group_by_season(events)

        assert list(grouped) == ["2023/2024", "2022/2023"]
        assert [e.title for e in grouped["2023/2024"]] == ["c", "b"]
        assert [e.title for e in grouped["2022/2023"]] == ["d", "a"]

    def test_empty(self) -> None:
        assert group_by_season([]) == {}


class TestFilterEvents:
    def test_by_type_and_player(self) -> None:
        player = str(uuid.uuid4())
        transfer = _event(date(2024, 1, 1), event_type=TimelineEventType.TRANSFER, player_id=player)
        match = _event(date(2024, 1, 2))

        assert filter_events([transfer, match], event_type=TimelineEventType.TRANSFER) == [transfer]
        assert filter_events([transfer, match], player_id=player) == [transfer]

    def test_week_and_month_windows(self) -> None:
        today = date(2024, 3, 31)
        recent = _event(today - timedelta(days=3))
        last_month = _event(today - timedelta(days=20))
        older = _event(today - timedelta(days=45))
        future = _event(today + timedelta(days=2))
        events = [recent, last_month, older, future]

        assert filter_events(events, period=TimelinePeriod.WEEK, today=today) == [recent]
        assert filter_events(events, period=TimelinePeriod.MONTH, today=today) == [recent, last_month]

    def test_season_window(self) -> None:
        today = date(2024, 3, 1)
        this_season = _event(date(2023, 8, 20))
        last_season = _event(date(2023, 5, 1))

        result = filter_events([this_season, last_season], period=TimelinePeriod.SEASON, today=today)
        assert result == [this_season]

    def test_search_is_case_insensitive_over_title_and_description(self) -> None:
        by_title = _event(date(2024, 1, 1), title="Derby win")
        by_description = _event(date(2024, 1, 2), title="Match", description="Late DERBY goal")
        unrelated = _event(date(2024, 1, 3), title="Training")

        result = filter_events([by_title, by_description, unrelated], search="  derby ")
        assert result == [by_title, by_description]
