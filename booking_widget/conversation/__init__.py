from booking_widget.conversation.booking_form import FormFields, validate_booking_form
from booking_widget.conversation.state_machine import (
    BookingSession,
    BookingState,
    BookingStateMachine,
    BookingTrigger,
)

__all__ = [
    "BookingStateMachine",
    "BookingSession",
    "BookingState",
    "BookingTrigger",
    "FormFields",
    "validate_booking_form",
]
