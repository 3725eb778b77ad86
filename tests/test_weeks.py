import re
from datetime import date, datetime, timedelta

import pytest

from errors import BookingValidationError
from weeks import add_days, parse_week_key, shift_week, start_of_iso_week, week_days, week_key


def test_week_key_example():
    # Wednesday, so the week's Thursday is Jan 2nd 2025
    assert week_key(date(2025, 1, 1)) == "2025-W01"


def test_add_days_example():
    assert add_days(date(2025, 11, 10), 2) == date(2025, 11, 12)


@pytest.mark.parametrize(
    "day, expected",
    [
        (date(2024, 12, 30), "2025-W01"),  # Monday before New Year
        (date(2019, 12, 30), "2020-W01"),
        (date(2021, 1, 3), "2020-W53"),  # Sunday after a 53-week year
        (date(2022, 1, 2), "2021-W52"),
        (date(2027, 1, 1), "2026-W53"),
        (date(2025, 12, 28), "2025-W52"),
        (date(2025, 3, 3), "2025-W10"),
    ],
)
def test_week_key_across_year_boundaries(day, expected):
    assert week_key(day) == expected


def test_week_key_agrees_with_isocalendar():
    day = date(2019, 12, 1)
    while day < date(2028, 2, 1):
        year, week, _ = day.isocalendar()
        assert week_key(day) == f"{year}-W{week:02d}"
        day += timedelta(days=1)


def test_week_key_format_and_stability():
    for offset in range(0, 800, 13):
        day = add_days(date(2024, 1, 1), offset)
        key = week_key(day)
        assert re.match(r"^\d{4}-W\d{2}$", key)
        assert week_key(day) == key


def test_week_key_accepts_datetime():
    assert week_key(datetime(2025, 1, 1, 23, 30)) == "2025-W01"


def test_start_of_iso_week():
    assert start_of_iso_week(date(2025, 3, 9)) == date(2025, 3, 3)  # Sunday
    assert start_of_iso_week(date(2025, 3, 3)) == date(2025, 3, 3)


def test_week_days_sequence():
    for day in (date(2024, 12, 31), date(2025, 6, 15), date(2026, 1, 1)):
        days = week_days(start_of_iso_week(day))
        assert len(days) == 7
        assert days[0].isoweekday() == 1
        assert all(b - a == timedelta(days=1) for a, b in zip(days, days[1:]))
        # the Thursday decides the week-year
        assert week_key(day).startswith(str(days[3].year))


def test_shift_week():
    assert shift_week(date(2025, 3, 5), 1) == date(2025, 3, 10)
    assert shift_week(date(2025, 1, 1), -1) == date(2024, 12, 23)


def test_parse_week_key_round_trip():
    for key in ("2025-W01", "2020-W53", "2025-W10", "2026-W53"):
        monday = parse_week_key(key)
        assert monday.isoweekday() == 1
        assert week_key(monday) == key


@pytest.mark.parametrize("key", ["2025-W54", "2021-W53", "2025-W00", "2025W10", "", "garbage"])
def test_parse_week_key_rejects_bad_keys(key):
    with pytest.raises(BookingValidationError):
        parse_week_key(key)
