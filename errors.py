"""
Exceptions shared by the stores, the slot policy and the HTTP layer.

Validation errors are raised before any I/O happens. Storage errors wrap
whatever went wrong underneath (network, snapshot file, database).
"""


class SchedulerError(Exception):
    """Base class for everything the booking board raises on purpose."""

    def __init__(self, message: str):
        self.message = message
        super().__init__(message)


class BookingValidationError(SchedulerError):
    """The booking was rejected before reaching storage."""


class DuplicateBookingError(BookingValidationError):
    """Person already holds a booking in this week (one-per-week policy)."""


class StorageError(SchedulerError):
    """The store could not be read or written."""
