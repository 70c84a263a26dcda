from datetime import datetime, timedelta, timezone

import pytest

from byos.screens.calendar import CalendarEvent
from byos.screens.renderer import RenderContext, ScreenKind, ScreenRenderer, safe_color, truncate, wrap
from byos.screens.scene import Circle, Rect, Text


class StaticEvents:
    def __init__(self, events):
        self.events = events

    def get_week_events(self, start, end):
        return list(self.events)


@pytest.fixture
def renderer():
    return ScreenRenderer(calendar_timezone="UTC", event_source=StaticEvents([]))


@pytest.fixture
def context():
    # Wednesday
    return RenderContext(now=datetime(2024, 5, 15, 15, 4, tzinfo=timezone.utc), timezone="UTC")


def test_clock_12h_default(renderer, context):
    texts = renderer.render("clock", {}, context).texts()
    assert "03:04 PM" in texts
    assert "Wednesday, May 15" in texts


def test_clock_24h(renderer, context):
    assert "15:04" in renderer.render("clock", {"format": "24h"}, context).texts()


def test_clock_uses_device_timezone(renderer):
    context = RenderContext(now=datetime(2024, 5, 15, 15, 4, tzinfo=timezone.utc), timezone="Asia/Tokyo")
    assert "00:04" in renderer.render("clock", {"format": "24h"}, context).texts()


def test_weather_defaults(renderer, context):
    texts = renderer.render("weather", {}, context).texts()
    assert texts == ["Unknown location", "--", "Unknown"]


def test_weather(renderer, context):
    config = {"location": "Hobart", "temperature": "12°C", "condition": "Windy"}
    assert renderer.render("weather", config, context).texts() == ["Hobart", "12°C", "Windy"]


def test_quote_wraps_and_credits(renderer, context):
    quote = "Simple is better than complex. " * 6
    texts = renderer.render("quote", {"quote": quote, "author": "Tim Peters"}, context).texts()
    assert len(texts) > 2
    assert texts[-1] == "- Tim Peters"


def test_custom_colors(renderer, context):
    scene = renderer.render(
        "custom",
        {"title": "Notice", "content": "Bins out tonight", "backgroundColor": "#000", "textColor": "white"},
        context,
    )
    assert scene.background == "#000"
    assert {e.fill for e in scene.elements if isinstance(e, Text)} == {"white"}
    assert scene.texts() == ["Notice", "Bins out tonight"]


def test_custom_rejects_bad_colors(renderer, context):
    scene = renderer.render(
        "custom", {"backgroundColor": "url(#x)", "textColor": '"><script>'}, context
    )
    assert scene.background == "#FFFFFF"
    assert scene.texts()[0] == ""
    assert all(e.fill == "#000000" for e in scene.elements if isinstance(e, Text))


def test_unknown_kind_renders_default(renderer, context):
    assert renderer.render("holograms", {}, context).texts()[0] == "TRMNL BYOS"


def test_default_screen(renderer, context):
    context.device_label = "Kitchen"
    texts = renderer.render(ScreenKind.DEFAULT, {}, context).texts()
    assert "Hello Kitchen!" in texts
    assert "15:04" in texts
    assert texts[-1] == "Device: Kitchen | 2024-05-15"


def test_default_screen_without_device(renderer, context):
    texts = renderer.render("default", None, context).texts()
    assert "Welcome" in texts
    assert texts[-1].startswith("Device: Test Mode")


def test_calendar_week_empty(renderer, context):
    scene = renderer.render("calendar-week", {}, context)
    texts = scene.texts()
    assert texts[0] == "Mon 13 May - Sun 19 May"
    assert texts.count("No events") == 7
    # today's label is inverted
    assert sum(1 for e in scene.elements if isinstance(e, Rect)) == 1
    assert any(isinstance(e, Text) and e.text == "Wed 15" and e.fill == "white" for e in scene.elements)


def test_calendar_week_events(context):
    monday = datetime(2024, 5, 13, tzinfo=timezone.utc)
    events = [
        CalendarEvent(id="1", title="Standup", start=monday + timedelta(hours=9), end=monday + timedelta(hours=10)),
        CalendarEvent(id="2", title="<A&B>", start=monday + timedelta(hours=11), end=monday + timedelta(hours=12)),
    ]
    renderer = ScreenRenderer(calendar_timezone="UTC", event_source=StaticEvents(events))
    scene = renderer.render("calendar-week", {}, context)

    texts = scene.texts()
    assert "09:00-10:00" in texts
    assert "Standup" in texts
    assert texts.count("No events") == 6
    assert "&lt;A&amp;B&gt;" in scene.to_svg()


def test_calendar_max_rows(context):
    monday = datetime(2024, 5, 13, tzinfo=timezone.utc)
    events = [
        CalendarEvent(id=str(i), title=f"E{i}", start=monday + timedelta(hours=8 + i), end=monday + timedelta(hours=9 + i))
        for i in range(5)
    ]
    renderer = ScreenRenderer(calendar_timezone="UTC", event_source=StaticEvents(events), calendar_max_rows=2)
    texts = renderer.render("calendar-week", {}, context).texts()
    assert [t for t in texts if t.startswith("E")] == ["E0", "E1"]


def test_year_progress(renderer):
    context = RenderContext(now=datetime(2024, 3, 1, 12, tzinfo=timezone.utc), timezone="UTC")
    scene = renderer.render("year-progress", {}, context)

    circles = [e for e in scene.elements if isinstance(e, Circle)]
    assert len(circles) == 366
    assert sum(1 for c in circles if c.fill == "black") == 61
    assert all(c.fill == "black" for c in circles[:61])
    # footer is drawn with glyph rectangles, not font text
    assert scene.texts() == []
    assert any(isinstance(e, Rect) for e in scene.elements)


def test_year_progress_common_year(renderer):
    context = RenderContext(now=datetime(2023, 12, 31, 12, tzinfo=timezone.utc))
    circles = [e for e in renderer.render("year-progress", {}, context).elements if isinstance(e, Circle)]
    assert len(circles) == 365
    assert sum(1 for c in circles if c.fill == "black") == 365


def test_year_progress_new_years_day(renderer):
    context = RenderContext(now=datetime(2023, 1, 1, 9, tzinfo=timezone.utc), timezone="UTC")
    circles = [e for e in renderer.render("year-progress", {}, context).elements if isinstance(e, Circle)]
    assert len(circles) == 365
    assert sum(1 for c in circles if c.fill == "black") == 1
    assert circles[0].fill == "black"


def test_safe_color():
    assert safe_color("#abc", "#000000") == "#abc"
    assert safe_color("#A1B2C3", "#000000") == "#A1B2C3"
    assert safe_color("Black", "#000000") == "Black"
    assert safe_color("#12", "#000000") == "#000000"
    assert safe_color(None, "#FFFFFF") == "#FFFFFF"


def test_truncate():
    assert truncate("short", 10) == "short"
    assert truncate("a much longer title", 10) == "a much..."


def test_wrap():
    lines = wrap("one two three four five six", size=10, max_width=60)
    assert all(len(line) <= 10 for line in lines)
    assert wrap("first\nsecond", size=10, max_width=600) == ["first", "second"]
    assert wrap("word " * 50, size=10, max_width=60, max_lines=2)[-1].endswith("...")


def test_demo_render_writes_previews(tmp_path, monkeypatch):
    from byos.screens.renderer import demo_render

    monkeypatch.chdir(tmp_path)
    monkeypatch.setenv("CALENDAR_TIMEZONE", "UTC")
    demo_render()

    preview = tmp_path / "data" / "preview"
    assert len(list(preview.glob("*.bmp"))) == len(ScreenKind)
    assert (preview / "calendar-week.svg").read_text().startswith("<?xml")
