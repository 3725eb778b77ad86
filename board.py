import asyncio
import logging
from datetime import date
from typing import Callable, Dict, List, Optional

from config import Settings
from errors import BookingValidationError, SchedulerError, StorageError
from export import export_csv, export_filename
from models import Booking
from policy import SlotPolicy
from roster import Roster
from store import BookingStore, make_store
from weeks import DAYS_IN_WEEK, parse_week_key, shift_week, start_of_iso_week, week_days, week_key

logger = logging.getLogger(__name__)


class WeekBoard:
    """
    State behind the people x days grid for one selected week.

    Every action either succeeds and reloads the week, or leaves the last
    loaded snapshot in place and puts the reason in `error`.
    """

    def __init__(
        self,
        store: BookingStore,
        policy: Optional[SlotPolicy] = None,
        roster: Optional[Roster] = None,
        today: Callable[[], date] = date.today,
        refresh_seconds: float = 60.0,
    ):
        self.store = store
        self.policy = policy or SlotPolicy()
        self.roster = roster
        self.refresh_seconds = refresh_seconds
        self._today = today
        self.week_start = start_of_iso_week(today())
        self.bookings: List[Booking] = []
        self.error = ""
        self._loads_in_flight = 0

    @classmethod
    def from_settings(
        cls, settings: Settings, today: Callable[[], date] = date.today, **remote_kwargs
    ) -> "WeekBoard":
        """Board over the configured backend, with the roster kept next to the local data."""
        return cls(
            make_store(settings, **remote_kwargs),
            policy=SlotPolicy.from_settings(settings),
            roster=Roster(settings.data_dir),
            today=today,
            refresh_seconds=settings.refresh_seconds,
        )

    @property
    def loading(self) -> bool:
        return self._loads_in_flight > 0

    @property
    def week_key(self) -> str:
        return week_key(self.week_start)

    @property
    def days(self) -> List[date]:
        return week_days(self.week_start)

    # --- Navigation ---
    def previous_week(self):
        self.week_start = shift_week(self.week_start, -1)

    def next_week(self):
        self.week_start = shift_week(self.week_start, 1)

    def this_week(self):
        self.week_start = start_of_iso_week(self._today())

    def select_week(self, key: str):
        self.week_start = parse_week_key(key)

    # --- Store round trips ---
    async def load(self) -> bool:
        requested = self.week_key
        self._loads_in_flight += 1
        self.error = ""
        try:
            bookings = await self.store.list_for_week(requested)
        except StorageError as exc:
            logger.warning("Loading %s failed: %s", requested, exc.message)
            if requested == self.week_key:
                self.error = exc.message
            return False
        finally:
            self._loads_in_flight -= 1

        # The user may have moved to another week while we were waiting
        if requested != self.week_key:
            logger.debug("Discarding stale bookings for %s, showing %s", requested, self.week_key)
            return False
        self.bookings = bookings
        return True

    async def assign(self, person: str, day_index: int, start_hour: int) -> Optional[Booking]:
        self.error = ""
        try:
            if not 0 <= day_index < DAYS_IN_WEEK:
                raise BookingValidationError("Pick a day of the week")
            draft = self.policy.draft(person, self.days[day_index], start_hour)
            booking = await self.policy.submit(self.store, draft)
        except SchedulerError as exc:
            self.error = exc.message
            return None
        await self.load()
        return booking

    async def remove(self, booking_id: str) -> bool:
        self.error = ""
        try:
            await self.store.delete(booking_id)
        except StorageError as exc:
            self.error = exc.message
            return False
        await self.load()
        return True

    async def refresh_forever(self, interval: Optional[float] = None):
        """Re-list the selected week every interval (default refresh_seconds) seconds until cancelled."""
        while True:
            await asyncio.sleep(interval or self.refresh_seconds)
            await self.load()

    # --- Derived views ---
    def people(self) -> List[str]:
        people = self.roster.names() if self.roster else []
        for booking in sorted(self.bookings, key=lambda b: b.title):
            if booking.title not in people:
                people.append(booking.title)
        return people

    def grid(self) -> Dict[str, List[List[Booking]]]:
        """person -> one list per day (Mon..Sun) of bookings ordered by start hour."""
        days = self.days
        grid = {person: [[] for _ in days] for person in self.people()}
        for booking in self.bookings:
            if booking.day_date in days:
                grid[booking.title][days.index(booking.day_date)].append(booking)
        for row in grid.values():
            for cell in row:
                cell.sort(key=lambda b: b.start_hour)
        return grid

    def export_csv(self) -> str:
        return export_csv(self.week_key, self.bookings)

    def export_filename(self) -> str:
        return export_filename(self.week_key)
