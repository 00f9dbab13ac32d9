"""Exception hierarchy shared by the scheduling core, transport and widget."""

from typing import Optional


class BookingError(Exception):
    """Base class for every error raised by the booking core."""


class BookingValidationError(BookingError):
    """Customer form fields are missing or malformed.

    ``field_errors`` maps a form field name to a user-facing message.
    """

    def __init__(self, field_errors: dict[str, str]) -> None:
        self.field_errors = dict(field_errors)
        fields = ", ".join(sorted(self.field_errors))
        super().__init__(f"Invalid booking details: {fields}")


class SlotConflictError(BookingError):
    """The requested slot is no longer free (lost a race or blocked)."""

    def __init__(self, message: str, conflicting_id: Optional[str] = None) -> None:
        self.conflicting_id = conflicting_id
        super().__init__(message)


class InvalidTransitionError(BookingError):
    """A status or session transition is not allowed from the current state."""


class AppointmentNotFoundError(BookingError):
    """No appointment or blocked slot exists with the given ID."""


class TransportError(BookingError):
    """The chat gateway could not be reached or its stream broke mid-way."""


class NotificationError(BookingError):
    """A booking notification could not be delivered."""
