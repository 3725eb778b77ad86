import re
from datetime import date, datetime, timedelta
from typing import List

from errors import BookingValidationError

WEEK_KEY_RE = re.compile(r"^(\d{4})-W(\d{2})$")
DAYS_IN_WEEK = 7


def _as_date(d: date) -> date:
    # datetime is a date subclass; drop the time part so arithmetic stays in whole days
    return d.date() if isinstance(d, datetime) else d


def add_days(d: date, days: int) -> date:
    return _as_date(d) + timedelta(days=days)


def start_of_iso_week(d: date) -> date:
    """Monday of the ISO week containing d."""
    d = _as_date(d)
    return d - timedelta(days=d.isoweekday() - 1)


def week_key(d: date) -> str:
    """
    ISO-8601 week label 'YYYY-Www' for d.

    The week-year is the calendar year of the week's Thursday, so the last
    days of December can land in week 1 of the next year and the first days
    of January in week 52/53 of the previous one. Week 1 is the week that
    contains January 4th.
    """
    d = _as_date(d)
    thursday = d + timedelta(days=4 - d.isoweekday())
    week1_monday = start_of_iso_week(date(thursday.year, 1, 4))
    week_no = 1 + (thursday - week1_monday).days // DAYS_IN_WEEK
    return f"{thursday.year}-W{week_no:02d}"


def week_days(monday: date) -> List[date]:
    """The 7 dates Mon..Sun starting at monday."""
    return [add_days(monday, i) for i in range(DAYS_IN_WEEK)]


def shift_week(monday: date, weeks: int) -> date:
    return add_days(start_of_iso_week(monday), weeks * DAYS_IN_WEEK)


def parse_week_key(key: str) -> date:
    """Monday of the week named by key. Raises BookingValidationError on a malformed key."""
    match = WEEK_KEY_RE.match(key or "")
    if not match:
        raise BookingValidationError(f"Invalid week key: {key!r}")
    year, week = int(match.group(1)), int(match.group(2))
    try:
        return date.fromisocalendar(year, week, 1)
    except ValueError:
        raise BookingValidationError(f"Invalid week key: {key!r}") from None
