import csv
import io
from typing import Iterable, List

from models import BookingBase

HEADER = ["Person", "Day", "Date", "Start", "End"]
# Monday = 0 .. Sunday = 6, matching date.weekday()
DAY_NAMES = ("Mon", "Tue", "Wed", "Thu", "Fri", "Sat", "Sun")


def format_hour(hour: int) -> str:
    return f"{hour:02d}:00"


def sort_by_person(bookings: Iterable[BookingBase]) -> List[BookingBase]:
    return sorted(bookings, key=lambda b: (b.title.casefold(), b.title, b.day_date, b.start_hour))


def export_rows(week_key: str, bookings: Iterable[BookingBase]) -> List[List[str]]:
    rows = [["Week", week_key], [], list(HEADER)]
    for b in sort_by_person(bookings):
        rows.append([
            b.title,
            DAY_NAMES[b.day_date.weekday()],
            b.day_date.isoformat(),
            format_hour(b.start_hour),
            format_hour(b.end_hour),
        ])
    return rows


def export_csv(week_key: str, bookings: Iterable[BookingBase]) -> str:
    buffer = io.StringIO()
    writer = csv.writer(buffer, lineterminator="\n")
    writer.writerows(export_rows(week_key, bookings))
    return buffer.getvalue()


def export_filename(week_key: str) -> str:
    return f"assignments_{week_key}.csv"
