import math
from datetime import datetime, timezone
from zoneinfo import ZoneInfo

import pytest

from byos.screens.progress import GRID_SLOTS, choose_grid, days_in_year, is_leap_year, year_progress

UTC = timezone.utc


@pytest.mark.parametrize(
    "year,leap",
    [(2000, True), (1900, False), (2024, True), (2023, False), (2100, False), (2400, True)],
)
def test_is_leap_year(year, leap):
    assert is_leap_year(year) is leap
    assert days_in_year(year) == (366 if leap else 365)


def test_first_day_of_leap_year():
    progress = year_progress(datetime(2024, 1, 1, 8, tzinfo=UTC), UTC)
    assert (progress.year, progress.day_index, progress.total_days) == (2024, 1, 366)
    assert progress.is_leap_year
    assert progress.percentage == pytest.approx(1 / 366)


def test_first_day_of_common_year():
    progress = year_progress(datetime(2023, 1, 1, 8, tzinfo=UTC), UTC)
    assert (progress.year, progress.day_index, progress.total_days) == (2023, 1, 365)
    assert not progress.is_leap_year
    assert progress.percentage == pytest.approx(1 / 365)


def test_last_day_of_year():
    progress = year_progress(datetime(2023, 12, 31, 23, 59, tzinfo=UTC), UTC)
    assert (progress.day_index, progress.total_days) == (365, 365)
    assert progress.percentage == 1


def test_local_date_decides_the_day():
    # Already New Year's Day in Sydney
    progress = year_progress(datetime(2023, 12, 31, 14, tzinfo=UTC), ZoneInfo("Australia/Sydney"))
    assert (progress.year, progress.day_index) == (2024, 1)


def test_march_first_in_leap_year():
    assert year_progress(datetime(2024, 3, 1, tzinfo=UTC), UTC).day_index == 61


def test_choose_grid_wide_area():
    assert choose_grid(366, 720, 320) == (20, 19)


def test_choose_grid_tall_area():
    assert choose_grid(365, 100, 1000) == (10, 37)


@pytest.mark.parametrize("width,height", [(720, 320), (400, 400), (300, 500)])
def test_choose_grid_holds_every_slot(width, height):
    columns, rows = choose_grid(365, width, height)
    assert 10 <= columns <= 20
    assert rows == math.ceil(GRID_SLOTS / columns)
    assert columns * rows >= GRID_SLOTS
