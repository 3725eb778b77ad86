"""
Booking stores.

Every backend exposes the same async operations so callers never branch on
which one is configured:

    list_for_week(week_key)   -> bookings of that week, empty if unknown
    create(draft)             -> stored booking with a fresh id
    delete(booking_id)        -> removes it; unknown ids are ignored
    create_if_absent(draft)   -> create unless the person already has a
                                 booking that week (atomic per store)
    clear_week(week_key)      -> drops the week's data set

Failures underneath (file, database, network) surface as StorageError.
"""
import asyncio
import json
import logging
import os
from abc import ABC, abstractmethod
from contextlib import asynccontextmanager
from pathlib import Path
from typing import Any, AsyncIterator, Dict, List

from pydantic import ValidationError
from sqlalchemy import delete as sql_delete
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncEngine
from sqlmodel import select

from config import BOOKINGS_KEY, Settings
from database import create_engine, session_factory
from errors import DuplicateBookingError, StorageError
from models import (
    Booking,
    BookingDraft,
    booking_from_draft,
    booking_from_json,
    booking_to_json,
    copy_booking,
)

logger = logging.getLogger(__name__)


class BookingStore(ABC):

    def __init__(self):
        # One lock per week key serializes the duplicate check with the insert.
        # Entries live only while someone holds or waits for them.
        self._week_locks: Dict[str, asyncio.Lock] = {}
        self._lock_users: Dict[str, int] = {}

    @abstractmethod
    async def list_for_week(self, week_key: str) -> List[Booking]: ...

    @abstractmethod
    async def create(self, draft: BookingDraft) -> Booking: ...

    @abstractmethod
    async def delete(self, booking_id: str) -> None: ...

    async def clear_week(self, week_key: str) -> int:
        bookings = await self.list_for_week(week_key)
        for booking in bookings:
            await self.delete(booking.id)
        return len(bookings)

    @asynccontextmanager
    async def _locked_week(self, week_key: str) -> AsyncIterator[None]:
        lock = self._week_locks.setdefault(week_key, asyncio.Lock())
        self._lock_users[week_key] = self._lock_users.get(week_key, 0) + 1
        try:
            async with lock:
                yield
        finally:
            self._lock_users[week_key] -= 1
            if not self._lock_users[week_key]:
                del self._lock_users[week_key]
                del self._week_locks[week_key]

    async def create_if_absent(self, draft: BookingDraft) -> Booking:
        async with self._locked_week(draft.week_key):
            for booking in await self.list_for_week(draft.week_key):
                if booking.title == draft.title:
                    logger.info("Rejected second booking for %s in %s", draft.title, draft.week_key)
                    raise DuplicateBookingError(f"{draft.title} already has a booking in {draft.week_key}")
            return await self.create(draft)

    async def close(self) -> None:
        pass


class MemoryBookingStore(BookingStore):
    """Server-side cache partitioned as week_key -> id -> booking. Lives as long as the process."""

    def __init__(self):
        super().__init__()
        self._weeks: Dict[str, Dict[str, Booking]] = {}
        self._week_of: Dict[str, str] = {}

    async def list_for_week(self, week_key: str) -> List[Booking]:
        # Copies, so callers cannot edit stored records in place
        return [copy_booking(booking) for booking in self._weeks.get(week_key, {}).values()]

    async def create(self, draft: BookingDraft) -> Booking:
        booking = booking_from_draft(draft)
        self._weeks.setdefault(booking.week_key, {})[booking.id] = booking
        self._week_of[booking.id] = booking.week_key
        logger.info("Created booking %s for %s in %s", booking.id, booking.title, booking.week_key)
        return copy_booking(booking)

    async def delete(self, booking_id: str) -> None:
        week = self._week_of.pop(booking_id, None)
        if week is None:
            return
        self._weeks.get(week, {}).pop(booking_id, None)
        logger.info("Deleted booking %s from %s", booking_id, week)

    async def clear_week(self, week_key: str) -> int:
        bookings = self._weeks.pop(week_key, {})
        for booking_id in bookings:
            self._week_of.pop(booking_id, None)
        return len(bookings)


class JsonSnapshot:
    """A single JSON document stored under a versioned key in data_dir."""

    def __init__(self, data_dir: Path, key: str, kind: type = dict):
        self.path = Path(data_dir) / f"{key}.json"
        self.kind = kind

    def load(self) -> Any:
        if not self.path.exists():
            return self.kind()
        try:
            value = json.loads(self.path.read_text(encoding="utf-8") or "null")
        except (OSError, ValueError) as exc:
            logger.error("Could not read %s: %s", self.path, exc)
            raise StorageError(f"Could not read {self.path.name}: {exc}") from exc
        if value is None:
            return self.kind()
        if not isinstance(value, self.kind):
            raise StorageError(f"{self.path.name} does not hold a JSON {self.kind.__name__}")
        return value

    def save(self, value: Any) -> None:
        tmp_path = self.path.with_name(self.path.name + ".tmp")
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            tmp_path.write_text(json.dumps(value, indent=1), encoding="utf-8")
            os.replace(tmp_path, self.path)
        except (OSError, TypeError, ValueError) as exc:
            logger.error("Could not write %s: %s", self.path, exc)
            raise StorageError(f"Could not write {self.path.name}: {exc}") from exc


class LocalBookingStore(BookingStore):
    """
    Bookings kept in one snapshot file (id -> record) on this machine.

    Each operation reads, modifies and writes the whole file without awaiting
    in between, so calls from one event loop never interleave. Other
    processes using the same file are not coordinated: the last writer wins.
    """

    def __init__(self, data_dir: Path, key: str = BOOKINGS_KEY):
        super().__init__()
        self.snapshot = JsonSnapshot(data_dir, key)

    def _records(self) -> Dict[str, Dict[str, Any]]:
        records = self.snapshot.load()
        for raw in records.values():
            if not isinstance(raw, dict):
                raise StorageError(f"Malformed booking in {self.snapshot.path.name}: {raw!r}")
        return records

    async def list_for_week(self, week_key: str) -> List[Booking]:
        bookings = []
        for raw in self._records().values():
            if raw.get("weekKey") != week_key:
                continue
            try:
                bookings.append(booking_from_json(raw))
            except (ValidationError, ValueError) as exc:
                raise StorageError(f"Malformed booking in {self.snapshot.path.name}: {exc}") from exc
        return bookings

    async def create(self, draft: BookingDraft) -> Booking:
        records = self._records()
        booking = booking_from_draft(draft)
        records[booking.id] = booking_to_json(booking)
        self.snapshot.save(records)
        logger.info("Created booking %s for %s in %s", booking.id, booking.title, booking.week_key)
        return booking

    async def delete(self, booking_id: str) -> None:
        records = self._records()
        if records.pop(booking_id, None) is None:
            return
        self.snapshot.save(records)
        logger.info("Deleted booking %s", booking_id)

    async def clear_week(self, week_key: str) -> int:
        records = self._records()
        kept = {k: v for k, v in records.items() if v.get("weekKey") != week_key}
        removed = len(records) - len(kept)
        if removed:
            self.snapshot.save(kept)
        return removed


class SqlBookingStore(BookingStore):
    """Bookings in the 'bookings' table, for servers that must survive a restart."""

    def __init__(self, engine: AsyncEngine):
        super().__init__()
        self.engine = engine
        self._sessions = session_factory(engine)

    async def list_for_week(self, week_key: str) -> List[Booking]:
        statement = select(Booking).where(Booking.week_key == week_key)
        try:
            async with self._sessions() as session:
                result = await session.execute(statement)
                return list(result.scalars().all())
        except SQLAlchemyError as exc:
            logger.error("Listing %s failed: %s", week_key, exc)
            raise StorageError(f"Database error: {exc}") from exc

    async def create(self, draft: BookingDraft) -> Booking:
        booking = booking_from_draft(draft)
        try:
            async with self._sessions() as session:
                session.add(booking)
                await session.commit()
        except SQLAlchemyError as exc:
            logger.error("Insert of %s failed: %s", booking.id, exc)
            raise StorageError(f"Database error: {exc}") from exc
        logger.info("Created booking %s for %s in %s", booking.id, booking.title, booking.week_key)
        return booking

    async def _delete_where(self, condition) -> int:
        try:
            async with self._sessions() as session:
                result = await session.execute(sql_delete(Booking).where(condition))
                await session.commit()
                return result.rowcount or 0
        except SQLAlchemyError as exc:
            logger.error("Delete failed: %s", exc)
            raise StorageError(f"Database error: {exc}") from exc

    async def delete(self, booking_id: str) -> None:
        if await self._delete_where(Booking.id == booking_id):
            logger.info("Deleted booking %s", booking_id)

    async def clear_week(self, week_key: str) -> int:
        return await self._delete_where(Booking.week_key == week_key)

    async def close(self) -> None:
        await self.engine.dispose()


def make_store(settings: Settings, **remote_kwargs) -> BookingStore:
    """Pick the backend named by settings.backend."""
    if settings.backend == "local":
        return LocalBookingStore(settings.data_dir)
    if settings.backend == "memory":
        return MemoryBookingStore()
    if settings.backend == "sql":
        return SqlBookingStore(create_engine(settings.database_url))
    if settings.backend == "remote":
        from remote import RemoteBookingStore

        return RemoteBookingStore(settings.backend_url, timeout=settings.remote_timeout, **remote_kwargs)
    raise ValueError(f"Unknown booking backend: {settings.backend!r}")
