from datetime import date
from typing import Any, Dict, Optional
from uuid import uuid4

from pydantic import AliasChoices, BaseModel, ConfigDict, Field as PydanticField
from pydantic.alias_generators import to_camel
from sqlmodel import Field, SQLModel

DEFAULT_DURATION_HOURS = 4


class BookingBase(SQLModel):
    week_key: str = Field(index=True)
    title: str  # person name, compared case-sensitively
    day_date: date
    start_hour: int
    duration_hours: int = DEFAULT_DURATION_HOURS

    @property
    def end_hour(self) -> int:
        return self.start_hour + self.duration_hours


class Booking(BookingBase, table=True):
    __tablename__ = "bookings"

    id: str = Field(primary_key=True)


class BookingDraft(BookingBase):
    """A booking that has not been given an id yet."""


def new_booking_id() -> str:
    return uuid4().hex


def booking_from_draft(draft: BookingDraft, booking_id: Optional[str] = None) -> Booking:
    return Booking(id=booking_id or new_booking_id(), **draft.model_dump())


def copy_booking(booking: Booking) -> Booking:
    # Rebuilt from fields; model_copy would share the SQLAlchemy instance state
    return Booking(**booking.model_dump())


# JSON shape shared by the HTTP API and the local snapshot file (camelCase keys)
class BookingPayload(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    id: Optional[str] = None
    week_key: Optional[str] = None
    title: str = ""
    # older snapshots stored the day as 'dayISO'
    day_date: date = PydanticField(
        validation_alias=AliasChoices("dayDate", "dayISO", "day_date"), serialization_alias="dayDate"
    )
    start_hour: int
    duration_hours: int = DEFAULT_DURATION_HOURS

    @classmethod
    def from_booking(cls, booking: BookingBase) -> "BookingPayload":
        return cls.model_validate(booking.model_dump())

    def to_draft(self) -> BookingDraft:
        return BookingDraft(
            week_key=self.week_key or "",
            title=self.title,
            day_date=self.day_date,
            start_hour=self.start_hour,
            duration_hours=self.duration_hours,
        )

    def to_booking(self) -> Booking:
        if not self.id:
            raise ValueError("Stored booking has no id")
        return booking_from_draft(self.to_draft(), booking_id=self.id)

    def to_json(self) -> Dict[str, Any]:
        return self.model_dump(by_alias=True, mode="json", exclude_none=True)


def booking_to_json(booking: BookingBase) -> Dict[str, Any]:
    return BookingPayload.from_booking(booking).to_json()


def booking_from_json(raw: Dict[str, Any]) -> Booking:
    return BookingPayload.model_validate(raw).to_booking()
