"""Week calendar data: events, week windows and per-day selection."""

from dataclasses import dataclass
from datetime import datetime, time, timedelta, tzinfo
from typing import Optional, Protocol


@dataclass(frozen=True)
class CalendarEvent:
    """A calendar entry with timezone-aware start and end."""

    id: str
    title: str
    start: datetime
    end: datetime
    all_day: bool = False
    location: Optional[str] = None
    calendar: Optional[str] = None


class EventSource(Protocol):
    """Anything that can list the events of a week."""

    def get_week_events(self, start: datetime, end: datetime) -> list[CalendarEvent]:
        ...


def day_start(day, tz: tzinfo) -> datetime:
    """Local midnight at the start of a date."""
    return datetime.combine(day, time.min, tzinfo=tz)


def week_bounds(now: datetime, tz: tzinfo) -> tuple[datetime, datetime]:
    """
    Get the Monday-to-Sunday week containing now.

    Returns:
        Tuple of (Monday 00:00, following Monday 00:00) in tz; the end is exclusive
    """
    local = now.astimezone(tz)
    monday = local.date() - timedelta(days=local.weekday())
    return day_start(monday, tz), day_start(monday + timedelta(days=7), tz)


def events_for_day(
    events: list[CalendarEvent],
    start: datetime,
    end: datetime,
    max_rows: Optional[int] = None,
) -> list[CalendarEvent]:
    """
    Select the events overlapping [start, end), earliest first.

    Events beyond max_rows are dropped.
    """
    selected = [
        event
        for event in events
        if event.start < end and (event.end > start or event.start == start)
    ]
    selected.sort(key=lambda event: (event.start, event.title))
    if max_rows is not None:
        selected = selected[:max(max_rows, 0)]
    return selected


class SampleEventSource:
    """Fixed demo events so the week layout can be checked on a device."""

    def get_week_events(self, start: datetime, end: datetime) -> list[CalendarEvent]:
        tz = start.tzinfo
        monday = start.date()

        def at(days: int, hour: int, minute: int = 0) -> datetime:
            return datetime.combine(monday + timedelta(days=days), time(hour, minute), tzinfo=tz)

        events = [
            CalendarEvent(
                id="1",
                title="Team sync",
                start=at(1, 9),
                end=at(1, 10),
                location="Zoom",
                calendar="Primary",
            ),
            CalendarEvent(
                id="2",
                title="Client lunch",
                start=at(2, 12, 30),
                end=at(2, 13, 30),
                location="CBD",
                calendar="Primary",
            ),
            CalendarEvent(
                id="3",
                title="All-day offsite",
                start=start,
                end=end,
                all_day=True,
                calendar="Ops",
            ),
        ]
        return sorted(events, key=lambda event: event.start)
