"""Screen renderer: turns a screen kind and its config into a Scene."""

import logging
import re
import textwrap
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from enum import Enum
from typing import Any, NamedTuple, Optional

from byos.trmnl.refresh import resolve_timezone

from .calendar import EventSource, SampleEventSource, day_start, events_for_day, week_bounds
from .glyphs import glyph_rects, text_height, text_width
from .progress import choose_grid, year_progress
from .scene import CANVAS_HEIGHT, CANVAS_WIDTH, Circle, Line, Rect, Scene, Text

logger = logging.getLogger(__name__)

MARGIN = 40
# Rough advance width of one character relative to the font size, for wrapping
CHAR_WIDTH_RATIO = 0.6

# Week calendar
CALENDAR_PAD = 20
CALENDAR_HEADER = 36
CALENDAR_GAP = 4
DAY_LABEL_SIZE = 16
EVENT_TIME_SIZE = 12
EVENT_TITLE_SIZE = 14

# Year progress
FOOTER_HEIGHT = 60
FOOTER_GLYPH_SCALE = 3

COLOR_PATTERN = re.compile(r"^#(?:[0-9A-Fa-f]{3}|[0-9A-Fa-f]{6})$")
NAMED_COLORS = {"black", "white", "gray", "grey", "silver", "lightgray", "darkgray"}


class ScreenKind(str, Enum):
    CLOCK = "clock"
    WEATHER = "weather"
    QUOTE = "quote"
    CUSTOM = "custom"
    CALENDAR_WEEK = "calendar-week"
    YEAR_PROGRESS = "year-progress"
    DEFAULT = "default"


@dataclass
class RenderContext:
    """Ambient data a screen may show."""

    now: datetime
    device_label: Optional[str] = None
    timezone: Optional[str] = None


class _Line(NamedTuple):
    text: str
    size: int
    bold: bool = False
    fill: str = "black"


def safe_color(value: Any, default: str) -> str:
    """Accept #RGB, #RRGGBB or a few named colors; anything else gets the default."""
    if isinstance(value, str):
        value = value.strip()
        if COLOR_PATTERN.match(value) or value.lower() in NAMED_COLORS:
            return value
    return default


def truncate(text: str, max_chars: int) -> str:
    if len(text) <= max_chars:
        return text
    return text[: max(max_chars - 3, 0)].rstrip() + "..."


def wrap(text: str, size: int, max_width: int, max_lines: Optional[int] = None) -> list[str]:
    """Wrap text to the estimated line width, keeping explicit line breaks."""
    chars = max(1, int(max_width / (size * CHAR_WIDTH_RATIO)))
    lines = []
    for paragraph in str(text).splitlines() or [""]:
        lines.extend(textwrap.wrap(paragraph, chars) or [""])

    if max_lines is not None and len(lines) > max_lines:
        lines = lines[: max(max_lines, 1)]
        lines[-1] = lines[-1][: max(chars - 3, 0)].rstrip() + "..."
    return lines


def _stack(scene: Scene, lines: list[_Line], center_x: int, center_y: int, gap: int):
    """Center a block of lines around a point."""
    total = sum(line.size for line in lines) + gap * (len(lines) - 1)
    top = center_y - total // 2
    for line in lines:
        scene.add(
            Text(
                x=center_x,
                y=top + line.size * 4 // 5,
                text=line.text,
                size=line.size,
                anchor="middle",
                bold=line.bold,
                fill=line.fill,
            )
        )
        top += line.size + gap


class ScreenRenderer:
    """Builds the scene for each screen kind. No I/O besides the event source."""

    def __init__(
        self,
        calendar_timezone: str = "Australia/Sydney",
        event_source: Optional[EventSource] = None,
        calendar_max_rows: int = 0,
        width: int = CANVAS_WIDTH,
        height: int = CANVAS_HEIGHT,
    ):
        """
        Initialize renderer.

        Args:
            calendar_timezone: Reference timezone of the week calendar, and the
                fallback for screens rendered without a device timezone
            event_source: Calendar events provider, sample events when omitted
            calendar_max_rows: Cap on events per day column, 0 for as many as fit
            width: Canvas width
            height: Canvas height
        """
        self.calendar_timezone = calendar_timezone
        self.event_source = event_source or SampleEventSource()
        self.calendar_max_rows = calendar_max_rows
        self.width = width
        self.height = height

        self._builders = {
            ScreenKind.CLOCK: self._render_clock,
            ScreenKind.WEATHER: self._render_weather,
            ScreenKind.QUOTE: self._render_quote,
            ScreenKind.CUSTOM: self._render_custom,
            ScreenKind.CALENDAR_WEEK: self._render_calendar_week,
            ScreenKind.YEAR_PROGRESS: self._render_year_progress,
            ScreenKind.DEFAULT: self._render_default,
        }

    def render(
        self,
        kind: str,
        config: Optional[dict] = None,
        context: Optional[RenderContext] = None,
    ) -> Scene:
        """
        Render a screen.

        Args:
            kind: Screen type; unknown types render the default screen
            config: Type specific settings
            context: Current time and device details

        Returns:
            Scene of the full canvas
        """
        try:
            kind = ScreenKind(kind)
        except ValueError:
            logger.warning(f"Unknown screen type {kind!r}, rendering default")
            kind = ScreenKind.DEFAULT

        context = context or RenderContext(now=datetime.now(timezone.utc))
        logger.debug(f"Rendering {kind.value} screen")
        return self._builders[kind](config or {}, context)

    def _new_scene(self, background: str = "white") -> Scene:
        return Scene(width=self.width, height=self.height, background=background)

    def _local_now(self, context: RenderContext) -> datetime:
        return context.now.astimezone(resolve_timezone(context.timezone or self.calendar_timezone))

    def _render_clock(self, config: dict, context: RenderContext) -> Scene:
        local = self._local_now(context)
        if str(config.get("format", "12h")).lower() in ("12h", "12"):
            time_text = local.strftime("%I:%M %p")
        else:
            time_text = local.strftime("%H:%M")
        date_text = f"{local:%A}, {local:%B} {local.day}"

        scene = self._new_scene()
        _stack(
            scene,
            [_Line(time_text, self.height // 4, bold=True), _Line(date_text, self.height // 16)],
            self.width // 2,
            self.height // 2,
            gap=self.height // 24,
        )
        return scene

    def _render_weather(self, config: dict, context: RenderContext) -> Scene:
        location = str(config.get("location") or "Unknown location")
        temperature = str(config.get("temperature") or "--")
        condition = str(config.get("condition") or "Unknown")

        scene = self._new_scene()
        _stack(
            scene,
            [
                _Line(location, self.height // 15),
                _Line(temperature, self.height // 5, bold=True),
                _Line(condition, self.height // 12),
            ],
            self.width // 2,
            self.height // 2,
            gap=self.height // 24,
        )
        return scene

    def _render_quote(self, config: dict, context: RenderContext) -> Scene:
        size = self.height // 16
        author_size = self.height // 20
        gap = size // 3
        max_lines = (self.height - 2 * MARGIN - 2 * author_size) // (size + gap)

        quote = str(config.get("quote") or "No quote configured")
        lines = [_Line(text, size) for text in wrap(quote, size, self.width - 2 * MARGIN, max_lines)]
        author = str(config.get("author") or "").strip()
        if author:
            lines.append(_Line(f"- {author}", author_size, bold=True))

        scene = self._new_scene()
        _stack(scene, lines, self.width // 2, self.height // 2, gap=gap)
        return scene

    def _render_custom(self, config: dict, context: RenderContext) -> Scene:
        background = safe_color(config.get("backgroundColor"), "#FFFFFF")
        foreground = safe_color(config.get("textColor"), "#000000")
        title_size = self.height // 12
        body_size = self.height // 20
        gap = self.height // 48
        line_height = body_size + body_size // 3

        scene = self._new_scene(background)
        scene.add(
            Text(
                x=MARGIN,
                y=MARGIN + title_size * 4 // 5,
                text=truncate(str(config.get("title") or ""), int((self.width - 2 * MARGIN) / (title_size * CHAR_WIDTH_RATIO))),
                size=title_size,
                bold=True,
                fill=foreground,
            )
        )

        rule_y = MARGIN + title_size + gap
        scene.add(Line(MARGIN, rule_y, self.width - MARGIN, rule_y, stroke=foreground, width=2))

        body_top = rule_y + gap
        max_lines = (self.height - MARGIN - body_top) // line_height
        content = str(config.get("content") or "")
        for index, text in enumerate(wrap(content, body_size, self.width - 2 * MARGIN, max_lines)):
            scene.add(
                Text(
                    x=MARGIN,
                    y=body_top + index * line_height + body_size * 4 // 5,
                    text=text,
                    size=body_size,
                    fill=foreground,
                )
            )
        return scene

    def _render_calendar_week(self, config: dict, context: RenderContext) -> Scene:
        tz = resolve_timezone(self.calendar_timezone)
        start, end = week_bounds(context.now, tz)
        events = self.event_source.get_week_events(start, end)
        last_day = (end - timedelta(days=1)).date()
        today = context.now.astimezone(tz).date()

        scene = self._new_scene()
        header = f"{start:%a} {start.day} {start:%b} - {last_day:%a} {last_day.day} {last_day:%b}"
        scene.add(Text(x=CALENDAR_PAD, y=CALENDAR_PAD + 24, text=header, size=24, bold=True))
        rule_y = CALENDAR_PAD + CALENDAR_HEADER
        scene.add(Line(CALENDAR_PAD, rule_y, self.width - CALENDAR_PAD, rule_y))

        body_top = rule_y + 8
        column_width = (self.width - 2 * CALENDAR_PAD - 6 * CALENDAR_GAP) // 7
        column_height = self.height - body_top - CALENDAR_PAD
        label_height = DAY_LABEL_SIZE + 10
        block_height = EVENT_TIME_SIZE + EVENT_TITLE_SIZE + 8

        max_rows = max((column_height - label_height) // block_height, 0)
        if self.calendar_max_rows > 0:
            max_rows = min(max_rows, self.calendar_max_rows)
        title_chars = max(1, int((column_width - 4) / (EVENT_TITLE_SIZE * CHAR_WIDTH_RATIO)))
        time_chars = max(1, int((column_width - 4) / (EVENT_TIME_SIZE * CHAR_WIDTH_RATIO)))

        for index in range(7):
            x = CALENDAR_PAD + index * (column_width + CALENDAR_GAP)
            day = start.date() + timedelta(days=index)
            label = f"{day:%a} {day.day}"

            if day == today:
                scene.add(Rect(x, body_top, column_width, label_height - 4, fill="black"))
                label_fill = "white"
            else:
                label_fill = "black"
            scene.add(
                Text(
                    x=x + column_width // 2,
                    y=body_top + DAY_LABEL_SIZE,
                    text=label,
                    size=DAY_LABEL_SIZE,
                    anchor="middle",
                    bold=True,
                    fill=label_fill,
                )
            )
            if index:
                divider_x = x - CALENDAR_GAP // 2
                scene.add(Line(divider_x, body_top, divider_x, body_top + column_height))

            day_events = events_for_day(
                events,
                day_start(day, tz),
                day_start(day + timedelta(days=1), tz),
                max_rows,
            )
            y = body_top + label_height
            if not day_events:
                scene.add(Text(x=x + 2, y=y + EVENT_TITLE_SIZE, text="No events", size=EVENT_TITLE_SIZE))

            for event in day_events:
                if event.all_day:
                    when = "All day"
                else:
                    when = f"{event.start.astimezone(tz):%H:%M}-{event.end.astimezone(tz):%H:%M}"
                scene.add(
                    Text(x=x + 2, y=y + EVENT_TIME_SIZE, text=truncate(when, time_chars), size=EVENT_TIME_SIZE),
                    Text(
                        x=x + 2,
                        y=y + EVENT_TIME_SIZE + 4 + EVENT_TITLE_SIZE,
                        text=truncate(event.title or "(untitled)", title_chars),
                        size=EVENT_TITLE_SIZE,
                        bold=True,
                    ),
                )
                y += block_height

        return scene

    def _render_year_progress(self, config: dict, context: RenderContext) -> Scene:
        tz = resolve_timezone(context.timezone or self.calendar_timezone)
        progress = year_progress(context.now, tz)

        available_width = self.width - 2 * MARGIN
        available_height = self.height - 2 * MARGIN - FOOTER_HEIGHT
        columns, rows = choose_grid(progress.total_days, available_width, available_height)

        cell_width = available_width // columns
        cell_height = available_height // rows
        dot_size = min(cell_width, cell_height) - 2
        radius = dot_size // 2
        stroke_width = max(1, dot_size // 7)
        start_x = MARGIN + (available_width - columns * cell_width) // 2
        start_y = MARGIN + (available_height - rows * cell_height) // 2

        scene = self._new_scene()
        for index in range(progress.total_days):
            row, column = divmod(index, columns)
            scene.add(
                Circle(
                    cx=start_x + column * cell_width + cell_width // 2,
                    cy=start_y + row * cell_height + cell_height // 2,
                    r=radius,
                    fill="black" if index < progress.day_index else "white",
                    stroke="black",
                    stroke_width=stroke_width,
                )
            )

        line_y = self.height - FOOTER_HEIGHT
        scene.add(Line(MARGIN, line_y, self.width - MARGIN, line_y, width=2))

        text_y = line_y + (FOOTER_HEIGHT - text_height(FOOTER_GLYPH_SCALE)) // 2
        elapsed = f"{progress.day_index} / {progress.total_days}"
        current_date = context.now.astimezone(tz).date().isoformat()
        percent = f"{progress.percentage * 100:.1f}%"
        scene.add(*glyph_rects(elapsed, MARGIN, text_y, FOOTER_GLYPH_SCALE))
        scene.add(
            *glyph_rects(
                current_date,
                (self.width - text_width(current_date, FOOTER_GLYPH_SCALE)) // 2,
                text_y,
                FOOTER_GLYPH_SCALE,
            )
        )
        scene.add(
            *glyph_rects(
                percent,
                self.width - MARGIN - text_width(percent, FOOTER_GLYPH_SCALE),
                text_y,
                FOOTER_GLYPH_SCALE,
            )
        )
        return scene

    def _render_default(self, config: dict, context: RenderContext) -> Scene:
        local = self._local_now(context)
        label = context.device_label

        scene = self._new_scene()
        _stack(
            scene,
            [
                _Line("TRMNL BYOS", self.height // 10, bold=True),
                _Line(f"Hello {label}!" if label else "Welcome", self.height // 16),
                _Line(local.strftime("%H:%M"), self.height // 6, bold=True),
                _Line(f"{local:%a} {local:%b} {local.day}", self.height // 18),
            ],
            self.width // 2,
            self.height // 2 - MARGIN // 2,
            gap=self.height // 30,
        )
        scene.add(
            Text(
                x=self.width // 2,
                y=self.height - MARGIN // 2,
                text=f"Device: {label or 'Test Mode'} | {local.date().isoformat()}",
                size=self.height // 34,
                anchor="middle",
                fill="#666666",
            )
        )
        return scene


def demo_render():
    """Demo: Render every screen kind to data/preview as BMP and SVG."""
    import os
    from pathlib import Path

    from dotenv import load_dotenv

    from byos.imaging.raster import render_bmp

    load_dotenv()

    renderer = ScreenRenderer(calendar_timezone=os.getenv("CALENDAR_TIMEZONE", "Australia/Sydney"))
    context = RenderContext(now=datetime.now(timezone.utc), device_label="Preview")
    output_dir = Path("data/preview")
    output_dir.mkdir(parents=True, exist_ok=True)

    for kind in ScreenKind:
        scene = renderer.render(kind, {}, context)
        (output_dir / f"{kind.value}.bmp").write_bytes(render_bmp(scene))
        (output_dir / f"{kind.value}.svg").write_text(scene.to_svg())
        print(f"Rendered {kind.value}")

    print(f"\nPreviews saved to: {output_dir.resolve()}")


if __name__ == "__main__":
    logging.basicConfig(level=logging.INFO)
    demo_render()
