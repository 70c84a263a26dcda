"""Year progress calculation and dot-grid sizing."""

import math
from dataclasses import dataclass
from datetime import datetime, tzinfo

# Grid is sized for a leap year so the layout does not shift between years
GRID_SLOTS = 366
MIN_COLUMNS = 10
MAX_COLUMNS = 20


def is_leap_year(year: int) -> bool:
    return year % 4 == 0 and (year % 100 != 0 or year % 400 == 0)


def days_in_year(year: int) -> int:
    return 366 if is_leap_year(year) else 365


@dataclass(frozen=True)
class YearProgress:
    year: int
    day_index: int  # 1-based, today included
    total_days: int

    @property
    def percentage(self) -> float:
        return self.day_index / self.total_days

    @property
    def is_leap_year(self) -> bool:
        return self.total_days == 366


def year_progress(now: datetime, tz: tzinfo) -> YearProgress:
    """Compute how far through its year the local date of now is."""
    local = now.astimezone(tz)
    total = days_in_year(local.year)
    day_index = local.timetuple().tm_yday
    return YearProgress(year=local.year, day_index=min(day_index, total), total_days=total)


def choose_grid(
    total_days: int,
    available_width: float,
    available_height: float,
    min_columns: int = MIN_COLUMNS,
    max_columns: int = MAX_COLUMNS,
) -> tuple[int, int]:
    """
    Pick the column count whose grid shape best matches the drawing area.

    Every candidate must hold GRID_SLOTS dots. Ties keep the fewer columns.

    Returns:
        Tuple of (columns, rows)
    """
    target = available_width / available_height
    best = None

    for columns in range(min_columns, max_columns + 1):
        rows = math.ceil(GRID_SLOTS / columns)
        if columns * rows < max(total_days, GRID_SLOTS):
            continue
        score = abs(columns / rows - target)
        if best is None or score < best[0]:
            best = (score, columns, rows)

    if best is None:
        raise ValueError(f"No grid between {min_columns} and {max_columns} columns fits")
    return best[1], best[2]
