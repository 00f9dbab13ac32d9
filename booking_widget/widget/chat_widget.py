"""
Chat presentation shell for the website booking widget.

Owns the transcript and the current ``BookingSession`` value and turns
visitor actions (typing, clicking a day or time pill, submitting the inline
form) into transport calls, bookings and state transitions. It is a pure
consumer of the transport and the scheduling service: every error they
raise is caught here and becomes a message in the transcript.

Usage:
    widget = ChatWidget(ChatTransport(), SchedulingService(store))
    widget.open()
    await widget.send_message("I'd like to book a consultation")
    for pill in widget.pills_for(widget.messages[-1]):
        ...
"""

import uuid
from dataclasses import dataclass
from datetime import date, datetime
from typing import Optional

from booking_widget.config import settings
from booking_widget.conversation.booking_form import FormFields, validate_booking_form
from booking_widget.conversation.state_machine import (
    BookingSession,
    BookingState,
    BookingStateMachine,
    BookingTrigger,
)
from booking_widget.errors import (
    BookingError,
    BookingValidationError,
    InvalidTransitionError,
    SlotConflictError,
    TransportError,
)
from booking_widget.logging_context import get_conversation_logger, set_conversation_id
from booking_widget.scheduling.service import SchedulingService
from booking_widget.schemas.conversation_schema import ChatMessage, Role
from booking_widget.schemas.scheduling_schema import Customer
from booking_widget.schemas.ui_schema import (
    AvailableDay,
    AvailableDaysPayload,
    TimeSlotsPayload,
    UIComponent,
)
from booking_widget.transport.client import ChatTransport
from booking_widget.utils import format_day_display, format_long_date

logger = get_conversation_logger(__name__)

TRANSPORT_ERROR_MESSAGE = "Sorry, I encountered an error. Please try again."
SLOTS_ERROR_MESSAGE = "Sorry, I couldn't get the available times. Please try again."
BOOKING_ERROR_MESSAGE = "Sorry, there was an error booking your appointment. Please try again."
SLOT_TAKEN_MESSAGE = "This time slot is no longer available. Please choose another time."


@dataclass(frozen=True)
class Pill:
    """A clickable button rendered under an assistant message."""

    kind: str  # "day" or "slot"
    label: str
    date: str
    time: Optional[str] = None
    enabled: bool = True


def _long_date(iso_date: str) -> str:
    return format_long_date(date.fromisoformat(iso_date))


def _offered_day(iso_date: str) -> AvailableDay:
    day = date.fromisoformat(iso_date)
    return AvailableDay(
        date=iso_date, display=format_day_display(day), day_name=day.strftime("%a")
    )


class ChatWidget:
    """One visitor's chat window and booking flow."""

    def __init__(
        self,
        transport: ChatTransport,
        scheduling: SchedulingService,
        conversation_id: Optional[str] = None,
        greeting: Optional[str] = None,
    ) -> None:
        self.transport = transport
        self.scheduling = scheduling
        self.conversation_id = conversation_id or f"CHAT-{uuid.uuid4().hex[:8].upper()}"
        self._greeting = greeting or settings.greeting
        self._machine = BookingStateMachine()
        self.session: BookingSession = self._machine.new_session()
        self.messages: list[ChatMessage] = []
        self.is_open = False
        self.is_loading = False

    # ------------------------------------------------------------------ #
    # Window
    # ------------------------------------------------------------------ #

    def open(self) -> None:
        """Show the window; the greeting is added the first time only."""
        set_conversation_id(self.conversation_id)
        self.is_open = True
        if not self.messages:
            self.messages.append(
                ChatMessage(role=Role.ASSISTANT, content=self._greeting, is_greeting=True)
            )
        logger.debug("Widget opened")

    def close(self) -> None:
        """Hide the window and abandon any booking in progress."""
        set_conversation_id(self.conversation_id)
        self.is_open = False
        self.session = self._machine.transition(self.session, BookingTrigger.WIDGET_CLOSED)
        logger.debug("Widget closed")

    @property
    def state(self) -> BookingState:
        return self.session.state

    @property
    def form_visible(self) -> bool:
        return self.session.form_visible

    # ------------------------------------------------------------------ #
    # Messages
    # ------------------------------------------------------------------ #

    async def send_message(self, text: str) -> Optional[ChatMessage]:
        """Send typed text and stream the assistant's answer into the transcript.

        Returns the assistant message, or ``None`` if nothing was sent.
        """
        text = text.strip()
        if not text or self.is_loading:
            return None
        set_conversation_id(self.conversation_id)
        self._append(Role.USER, text)
        return await self._ask(self._history(), TRANSPORT_ERROR_MESSAGE)

    def _append(
        self, role: Role, content: str, ui_component: Optional[UIComponent] = None
    ) -> ChatMessage:
        message = ChatMessage(role=role, content=content, ui_component=ui_component)
        self.messages.append(message)
        return message

    def _history(self) -> list[ChatMessage]:
        return [m for m in self.messages if not m.is_greeting]

    async def _ask(
        self, history: list[ChatMessage], error_message: str
    ) -> ChatMessage:
        """Stream one assistant turn; the UI payload is applied only after the stream ends."""
        reply = self._append(Role.ASSISTANT, "")
        ui_component: Optional[UIComponent] = None
        self.is_loading = True
        try:
            async for fragment in self.transport.stream(history):
                if fragment.content:
                    reply.content += fragment.content
                if fragment.ui_component is not None:
                    ui_component = fragment.ui_component
        except TransportError as e:
            logger.warning("Assistant reply failed: %s", e)
            reply.content = error_message
            return reply
        finally:
            self.is_loading = False

        reply.ui_component = ui_component
        self._apply_ui_component(ui_component)
        return reply

    def _apply_ui_component(self, ui_component: Optional[UIComponent]) -> None:
        if isinstance(ui_component, AvailableDaysPayload):
            trigger, changes = BookingTrigger.DAYS_RECEIVED, {
                "offered_days": tuple(ui_component.days)
            }
        elif isinstance(ui_component, TimeSlotsPayload):
            trigger, changes = BookingTrigger.DAY_SELECTED, {
                "selected_date": ui_component.date,
                "offered_slots": tuple(ui_component.slots),
            }
            if ui_component.date not in self.session.offered_dates():
                changes["offered_days"] = self.session.offered_days + (
                    _offered_day(ui_component.date),
                )
        else:
            return

        try:
            self.session = self._machine.transition(self.session, trigger, **changes)
        except InvalidTransitionError as e:
            # Payload out of order for this flow; its pills render disabled.
            logger.debug("Ignoring %s payload: %s", ui_component.type, e)

    # ------------------------------------------------------------------ #
    # Pills
    # ------------------------------------------------------------------ #

    def pills_for(self, message: ChatMessage) -> list[Pill]:
        """Buttons to render under ``message``; stale ones come back disabled."""
        ui = message.ui_component
        if isinstance(ui, AvailableDaysPayload):
            return [
                Pill(
                    kind="day",
                    label=day.display,
                    date=day.date,
                    enabled=self._machine.can_transition(
                        self.session, BookingTrigger.DAY_SELECTED, selected_date=day.date
                    ),
                )
                for day in ui.days
            ]
        if isinstance(ui, TimeSlotsPayload):
            return [
                Pill(
                    kind="slot",
                    label=slot.display,
                    date=ui.date,
                    time=slot.time,
                    enabled=self._machine.can_transition(
                        self.session,
                        BookingTrigger.SLOT_SELECTED,
                        selected_date=ui.date,
                        selected_time=slot.time,
                    ),
                )
                for slot in ui.slots
            ]
        return []

    async def select_day(self, iso_date: str, display: str) -> Optional[ChatMessage]:
        """Ask the assistant for the time slots of a clicked day."""
        set_conversation_id(self.conversation_id)
        if self.is_loading or not self._machine.can_transition(
            self.session, BookingTrigger.DAY_SELECTED, selected_date=iso_date
        ):
            logger.debug("Day pill %s is not selectable in %s", iso_date, self.state.value)
            return None

        self._append(Role.USER, f"Show me times for {display}")
        # The gateway sees the ISO date; the transcript shows the label.
        history = self._history()[:-1] + [
            ChatMessage(role=Role.USER, content=f"Show me available times for {iso_date}")
        ]
        return await self._ask(history, SLOTS_ERROR_MESSAGE)

    def select_slot(self, iso_date: str, time: str, display: str) -> Optional[ChatMessage]:
        """Open the inline form for a clicked time pill. No network call."""
        set_conversation_id(self.conversation_id)
        try:
            self.session = self._machine.transition(
                self.session,
                BookingTrigger.SLOT_SELECTED,
                selected_date=iso_date,
                selected_time=time,
                selected_display=display,
            )
        except InvalidTransitionError as e:
            logger.debug("Time pill %s %s rejected: %s", iso_date, time, e)
            return None
        return self._append(Role.USER, f"I'd like to book {display} on {_long_date(iso_date)}")

    # ------------------------------------------------------------------ #
    # Inline form
    # ------------------------------------------------------------------ #

    def cancel_form(self) -> None:
        set_conversation_id(self.conversation_id)
        try:
            self.session = self._machine.transition(self.session, BookingTrigger.FORM_CANCELLED)
        except InvalidTransitionError as e:
            logger.debug("Nothing to cancel: %s", e)

    def submit_form(
        self, name: str, email: str, phone: Optional[str] = None
    ) -> Optional[ChatMessage]:
        """Validate the form and book the selected slot.

        Returns the assistant message describing the outcome, or ``None`` if
        the form stayed open with field errors or no form was open.
        """
        set_conversation_id(self.conversation_id)
        if not self.session.form_visible:
            logger.debug("Form submitted in %s; ignored", self.state.value)
            return None

        fields = FormFields(name=name or "", email=email or "", phone=phone or "")
        try:
            customer = validate_booking_form(fields.name, fields.email, fields.phone)
        except BookingValidationError as e:
            self.session = self._machine.transition(
                self.session,
                BookingTrigger.FORM_INVALID,
                form=fields,
                form_errors=e.field_errors,
            )
            return None

        self.session = self._machine.transition(
            self.session, BookingTrigger.FORM_SUBMITTED, form=fields
        )
        contact = f"email is {customer.email}"
        if customer.phone:
            contact += f", phone: {customer.phone}"
        self._append(
            Role.USER, f"My name is {customer.name}, {contact}. Please confirm my booking."
        )
        return self._book(customer)

    def _book(self, customer: Customer) -> ChatMessage:
        session = self.session
        day = date.fromisoformat(session.selected_date)
        start = datetime.strptime(session.selected_time, "%H:%M").time()
        try:
            appointment = self.scheduling.book(
                day, start, customer, conversation_id=self.conversation_id
            )
        except SlotConflictError as e:
            logger.warning("Slot %s %s taken before submit: %s", day, session.selected_time, e)
            return self._slot_taken(day)
        except BookingError as e:
            logger.error("Booking failed: %s", e)
            return self._failed(session)
        except Exception:
            logger.exception("Unexpected error while booking %s %s", day, session.selected_time)
            return self._failed(session)

        self.session = self._machine.transition(
            session, BookingTrigger.BOOKING_CONFIRMED, appointment_id=appointment.id
        )
        logger.info("Booked %s for %s", appointment.id, customer.email)
        return self._append(
            Role.ASSISTANT,
            f"You're all set, {customer.name}! Your appointment is confirmed for "
            f"{format_long_date(day)} at {session.selected_display}. "
            f"A confirmation email has been sent to {customer.email}.",
        )

    def _failed(self, session: BookingSession) -> ChatMessage:
        self.session = self._machine.transition(
            session, BookingTrigger.BOOKING_FAILED, last_error=BOOKING_ERROR_MESSAGE
        )
        return self._append(Role.ASSISTANT, BOOKING_ERROR_MESSAGE)

    def _slot_taken(self, day: date) -> ChatMessage:
        try:
            slots = self.scheduling.free_slots(day)
        except BookingError as e:
            logger.error("Could not refresh slots after conflict: %s", e)
            return self._failed(self.session)

        self.session = self._machine.transition(
            self.session,
            BookingTrigger.SLOT_TAKEN,
            offered_slots=tuple(slots),
            last_error=SLOT_TAKEN_MESSAGE,
        )
        return self._append(
            Role.ASSISTANT,
            SLOT_TAKEN_MESSAGE,
            ui_component=TimeSlotsPayload(date=day.isoformat(), slots=slots),
        )
