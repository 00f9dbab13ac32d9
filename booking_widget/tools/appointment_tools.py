"""
Appointment tools exposed to the chat gateway's language model.

Each tool answers with a ``ToolResult``: a short ``message`` the model can
paraphrase, structured ``data``, and optionally a ``ui_component`` the
widget renders as clickable pills. Expected failures (bad arguments, a
taken slot, an invalid customer) come back as ``success=False`` results
rather than exceptions so the model can recover in conversation.
"""

from datetime import date, datetime, time
from typing import Any, Callable, Optional, TypedDict

from booking_widget.config import settings
from booking_widget.conversation.booking_form import validate_booking_form
from booking_widget.errors import BookingValidationError, SlotConflictError
from booking_widget.logging_context import get_conversation_logger
from booking_widget.scheduling.service import SchedulingService
from booking_widget.schemas.ui_schema import (
    AvailableDaysPayload,
    TimeSlotsPayload,
    UIComponent,
)
from booking_widget.utils import format_long_date, format_time_display

logger = get_conversation_logger(__name__)


class ToolResult(TypedDict, total=False):
    """Result returned to the gateway for one tool call."""

    success: bool
    message: str
    data: dict[str, Any]
    ui_component: UIComponent
    error: str


def _parse_date(value: Any) -> date:
    try:
        return date.fromisoformat(str(value).strip())
    except ValueError:
        raise ValueError(f"Invalid date {value!r}; expected YYYY-MM-DD") from None


def _parse_time(value: Any) -> time:
    try:
        return datetime.strptime(str(value).strip(), "%H:%M").time()
    except ValueError:
        raise ValueError(f"Invalid time {value!r}; expected HH:MM (24-hour)") from None


def _parse_limit(value: Any) -> Optional[int]:
    if value is None:
        return None
    try:
        limit = int(str(value).strip())
    except ValueError:
        raise ValueError(f"Invalid limit {value!r}; expected a whole number") from None
    if limit < 1:
        raise ValueError(f"Invalid limit {value!r}; must be at least 1")
    return limit


def get_available_days(service: SchedulingService, limit: Optional[int] = None) -> ToolResult:
    """Upcoming bookable days, shown as day pills."""
    days = service.available_days(limit=limit or settings.scheduling.days_offered)
    if not days:
        return {
            "success": True,
            "message": "There are no open days in the booking window right now.",
            "data": {"days": [], "count": 0},
        }
    return {
        "success": True,
        "message": (
            f"Here are the next {len(days)} available days. "
            "Click one to see available times."
        ),
        "data": {"days": [d.model_dump(by_alias=True) for d in days], "count": len(days)},
        "ui_component": AvailableDaysPayload(days=days),
    }


def get_available_slots(service: SchedulingService, day: str) -> ToolResult:
    """Free time slots on one day, shown as time pills."""
    target = _parse_date(day)
    slots = service.free_slots(target)
    data = {
        "date": target.isoformat(),
        "duration": service.settings.default_duration,
        "slots": [s.model_dump() for s in slots],
    }
    if not slots:
        return {
            "success": True,
            "message": (
                f"No available slots on {format_long_date(target)}. "
                "Please choose another day."
            ),
            "data": data,
        }
    return {
        "success": True,
        "message": f"Found {len(slots)} available time slots.",
        "data": data,
        "ui_component": TimeSlotsPayload(date=target.isoformat(), slots=slots),
    }


def check_slot_availability(service: SchedulingService, day: str, start: str) -> ToolResult:
    """Whether one specific slot can still be booked."""
    target = _parse_date(day)
    start_time = _parse_time(start)
    available = service.check_slot(target, start_time)
    return {
        "success": True,
        "message": (
            "That time slot is available!"
            if available
            else "That time slot is not available. Please choose another time."
        ),
        "data": {"available": available, "date": target.isoformat(), "time": start},
    }


def book_appointment(
    service: SchedulingService,
    day: str,
    start: str,
    customer_name: str,
    customer_email: str,
    customer_phone: Optional[str] = None,
    service_name: Optional[str] = None,
    notes: Optional[str] = None,
    conversation_id: Optional[str] = None,
) -> ToolResult:
    """Book a slot for a customer once date, time and contact details are known."""
    target = _parse_date(day)
    start_time = _parse_time(start)
    try:
        customer = validate_booking_form(customer_name, customer_email, customer_phone)
    except BookingValidationError as e:
        return {
            "success": False,
            "error": "Missing or invalid customer details: " + ", ".join(sorted(e.field_errors)),
            "data": {"field_errors": e.field_errors},
        }

    try:
        appointment = service.book(
            target,
            start_time,
            customer,
            service=service_name,
            notes=notes,
            conversation_id=conversation_id,
        )
    except SlotConflictError:
        return {
            "success": False,
            "error": "This time slot was just booked. Please choose another time.",
        }

    return {
        "success": True,
        "message": (
            f"Appointment confirmed! {customer.name} is booked for "
            f"{format_long_date(target)} at {format_time_display(start_time)}. "
            f"A confirmation email has been sent to {customer.email}."
        ),
        "data": appointment.model_dump(mode="json"),
    }


_TOOLS: dict[str, Callable[..., ToolResult]] = {
    "get_available_days": lambda svc, args: get_available_days(
        svc, _parse_limit(args.get("limit"))
    ),
    "get_available_slots": lambda svc, args: get_available_slots(svc, args["date"]),
    "check_slot_availability": lambda svc, args: check_slot_availability(
        svc, args["date"], args["time"]
    ),
    "book_appointment": lambda svc, args: book_appointment(
        svc,
        args["date"],
        args["startTime"],
        args["customerName"],
        args["customerEmail"],
        customer_phone=args.get("customerPhone"),
        service_name=args.get("service"),
        notes=args.get("notes"),
        conversation_id=args.get("conversationId"),
    ),
}

TOOL_NAMES: tuple[str, ...] = tuple(_TOOLS)


def execute_appointment_tool(
    service: SchedulingService, name: str, args: Optional[dict[str, Any]] = None
) -> ToolResult:
    """Dispatch a model tool call by name with its JSON arguments."""
    args = args or {}
    handler = _TOOLS.get(name)
    if handler is None:
        return {"success": False, "error": f"Unknown function: {name}"}

    logger.debug("Executing tool %s with %s", name, sorted(args))
    try:
        result = handler(service, args)
    except KeyError as e:
        return {"success": False, "error": f"Missing required argument: {e.args[0]}"}
    except ValueError as e:
        return {"success": False, "error": str(e)}

    logger.info("Tool %s -> success=%s", name, result["success"])
    return result
