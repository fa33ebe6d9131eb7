"""Season grouping, ordering, and filtering of timeline events.

A football season runs from August of year N to May of year N+1 and is
keyed "N/N+1". Everything here is a pure transform over already-fetched
events; nothing is persisted.
"""

from __future__ import annotations

from datetime import date, datetime, timedelta, timezone

from src.app.timeline.schemas import TimelineEventRead, TimelineEventType, TimelinePeriod

# First month (1-based) that belongs to the new season.
SEASON_START_MONTH = 8

_PERIOD_DAYS: dict[TimelinePeriod, int] = {
    TimelinePeriod.WEEK: 7,
    TimelinePeriod.MONTH: 30,
}


def season_key_of(value: date | datetime) -> str:
    """Season key for a date.

    Examples:
        2023-07-31 -> "2022/2023"
        2023-08-01 -> "2023/2024"
    """
    if value.month >= SEASON_START_MONTH:
        return f"{value.year}/{value.year + 1}"
    return f"{value.year - 1}/{value.year}"


def _season_start_year(key: str) -> int:
    return int(key.split("/", 1)[0])


def _sort_key(event: TimelineEventRead) -> tuple[bool, int, float]:
    created = event.created_at.timestamp() if event.created_at else 0.0
    return (not event.is_pinned, -event.event_date.toordinal(), -created)


def sort_events(events: list[TimelineEventRead]) -> list[TimelineEventRead]:
    """Pinned events first regardless of date, then newest event_date first.

    Ties on event_date fall back to newest created_at. The sort is stable.
    """
    return sorted(events, key=_sort_key)


def group_by_season(events: list[TimelineEventRead]) -> dict[str, list[TimelineEventRead]]:
    """Partition events by season key.

    Seasons are ordered newest first and each bucket is ordered with
    sort_events(), so pinned events lead within their own season.
    """
    buckets: dict[str, list[TimelineEventRead]] = {}
    for event in events:
        buckets.setdefault(season_key_of(event.event_date), []).append(event)

    return {
        key: sort_events(buckets[key])
        for key in sorted(buckets, key=_season_start_year, reverse=True)
    }


def filter_events(
    events: list[TimelineEventRead],
    *,
    event_type: TimelineEventType | None = None,
    period: TimelinePeriod | None = None,
    player_id: str | None = None,
    search: str | None = None,
    today: date | None = None,
) -> list[TimelineEventRead]:
    """Apply view filters to a list of events, preserving input order.

    Args:
        events: Events to filter.
        event_type: Keep only this category.
        period: ``week`` / ``month`` keep the last 7 / 30 days up to
            ``today``; ``season`` keeps the season ``today`` falls in.
        player_id: Keep only events about this player.
        search: Case-insensitive substring of title or description.
        today: Reference date for ``period`` (defaults to today in UTC).
    """
    today = today or datetime.now(timezone.utc).date()
    needle = search.strip().lower() if search else ""
    current_season = season_key_of(today)

    result: list[TimelineEventRead] = []
    for event in events:
        if event_type is not None and event.event_type != event_type:
            continue
        if player_id is not None and event.player_id != player_id:
            continue
        if period == TimelinePeriod.SEASON:
            if season_key_of(event.event_date) != current_season:
                continue
        elif period is not None:
            cutoff = today - timedelta(days=_PERIOD_DAYS[period])
            if not (cutoff <= event.event_date <= today):
                continue
        if needle:
            haystack = f"{event.title} {event.description or ''}".lower()
            if needle not in haystack:
                continue
        result.append(event)
    return result
