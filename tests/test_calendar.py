from datetime import datetime, timedelta, timezone
from zoneinfo import ZoneInfo

from byos.screens.calendar import (
    CalendarEvent,
    SampleEventSource,
    day_start,
    events_for_day,
    week_bounds,
)

SYDNEY = ZoneInfo("Australia/Sydney")


def event(id, title, start, hours=1, **kwargs):
    return CalendarEvent(id=id, title=title, start=start, end=start + timedelta(hours=hours), **kwargs)


def test_week_bounds():
    # Wednesday evening in Sydney
    start, end = week_bounds(datetime(2024, 5, 15, 12, tzinfo=timezone.utc), SYDNEY)
    assert start == datetime(2024, 5, 13, tzinfo=SYDNEY)
    assert end == datetime(2024, 5, 20, tzinfo=SYDNEY)
    assert start.weekday() == 0


def test_week_bounds_uses_local_date():
    # Sunday 14:00 UTC is already Monday in Sydney
    start, _ = week_bounds(datetime(2024, 5, 19, 14, tzinfo=timezone.utc), SYDNEY)
    assert start.date().isoformat() == "2024-05-20"


def test_events_for_day_overlap_and_order():
    monday = datetime(2024, 5, 13, tzinfo=SYDNEY)
    tuesday = monday + timedelta(days=1)
    events = [
        event("late", "Zebra", monday.replace(hour=15)),
        event("early-b", "Beta", monday.replace(hour=9)),
        event("early-a", "Alpha", monday.replace(hour=9)),
        event("overnight", "Overnight", monday - timedelta(hours=2), hours=3),
        event("ended", "Ended", monday - timedelta(hours=1), hours=1),
        event("tomorrow", "Tomorrow", tuesday),
    ]

    selected = events_for_day(events, monday, tuesday)
    assert [e.id for e in selected] == ["overnight", "early-a", "early-b", "late"]


def test_events_for_day_keeps_zero_length_event_at_midnight():
    monday = datetime(2024, 5, 13, tzinfo=SYDNEY)
    marker = CalendarEvent(id="m", title="Marker", start=monday, end=monday)
    assert events_for_day([marker], monday, monday + timedelta(days=1)) == [marker]


def test_events_for_day_truncates():
    monday = datetime(2024, 5, 13, tzinfo=SYDNEY)
    events = [event(str(i), f"Event {i}", monday.replace(hour=8 + i)) for i in range(5)]

    selected = events_for_day(events, monday, monday + timedelta(days=1), max_rows=2)
    assert [e.id for e in selected] == ["0", "1"]
    assert events_for_day(events, monday, monday + timedelta(days=1), max_rows=0) == []


def test_day_start():
    start = day_start(datetime(2024, 10, 6).date(), SYDNEY)
    assert (start.hour, start.minute) == (0, 0)
    assert start.tzinfo is SYDNEY


def test_sample_events_fall_inside_the_week():
    start, end = week_bounds(datetime(2024, 5, 15, tzinfo=timezone.utc), SYDNEY)
    events = SampleEventSource().get_week_events(start, end)

    assert {e.title for e in events} == {"Team sync", "Client lunch", "All-day offsite"}
    assert all(start <= e.start < end for e in events)
    assert events == sorted(events, key=lambda e: e.start)

    for offset in range(7):
        day = day_start(start.date() + timedelta(days=offset), SYDNEY)
        titles = [e.title for e in events_for_day(events, day, day + timedelta(days=1))]
        assert "All-day offsite" in titles
