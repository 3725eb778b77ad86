from dataclasses import dataclass, field
from datetime import date
from typing import Tuple

from errors import BookingValidationError
from models import DEFAULT_DURATION_HOURS, Booking, BookingDraft
from weeks import week_key


@dataclass(frozen=True)
class SlotPolicy:
    """
    Rules a booking must pass before it is handed to a store.

    Different people may share the same day and hour; only the
    one-per-week rule (when enabled) looks at other bookings.
    """

    start_hours: Tuple[int, ...] = field(default_factory=lambda: tuple(range(6, 19)))
    duration_hours: int = DEFAULT_DURATION_HOURS
    day_end_hour: int = 24
    one_per_week: bool = False

    @classmethod
    def from_settings(cls, settings) -> "SlotPolicy":
        return cls(
            start_hours=tuple(settings.start_hours),
            duration_hours=settings.duration_hours,
            day_end_hour=settings.day_end_hour,
            one_per_week=settings.one_booking_per_week,
        )

    def draft(self, title: str, day_date: date, start_hour: int) -> BookingDraft:
        """Build a fixed-length draft for day_date, keyed by that day's week."""
        return BookingDraft(
            week_key=week_key(day_date),
            title=(title or "").strip(),
            day_date=day_date,
            start_hour=start_hour,
            duration_hours=self.duration_hours,
        )

    def validate(self, draft: BookingDraft) -> None:
        if not draft.title or not draft.title.strip():
            raise BookingValidationError("Pick a person")
        if not draft.week_key:
            raise BookingValidationError("Missing weekKey")
        expected = week_key(draft.day_date)
        if draft.week_key != expected:
            raise BookingValidationError(
                f"weekKey {draft.week_key} does not match {draft.day_date.isoformat()} (expected {expected})"
            )
        if draft.duration_hours != self.duration_hours:
            raise BookingValidationError(f"Bookings are {self.duration_hours} hours long")
        if draft.start_hour not in self.start_hours:
            raise BookingValidationError(
                f"Start hour must be between {min(self.start_hours):02d}:00 and {max(self.start_hours):02d}:00"
            )
        if draft.start_hour + draft.duration_hours > self.day_end_hour:
            raise BookingValidationError(f"Booking would run past {self.day_end_hour:02d}:00")

    async def submit(self, store, draft: BookingDraft) -> Booking:
        """Validate draft and persist it, as a conditional insert under the one-per-week rule."""
        self.validate(draft)
        if self.one_per_week:
            return await store.create_if_absent(draft)
        return await store.create(draft)
