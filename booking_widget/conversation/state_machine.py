"""
Finite state machine for the in-chat booking flow.

The flow is strictly Idle -> DaysOffered -> SlotsOffered -> FormOpen ->
Submitting, with explicit transitions for retries, cancellation and the
visitor closing the widget. Sessions are immutable values: every transition
takes a ``BookingSession`` and returns a new one, so the widget (or any
other front end) owns storage of the current value.

Usage:
    machine = BookingStateMachine()
    session = machine.new_session()
    session = machine.transition(session, BookingTrigger.DAYS_RECEIVED, offered_days=days)
    assert session.state == BookingState.DAYS_OFFERED
"""

import logging
from dataclasses import dataclass, field, replace
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Callable, Optional

from booking_widget.conversation.booking_form import FormFields
from booking_widget.errors import InvalidTransitionError
from booking_widget.schemas.ui_schema import AvailableDay, TimeSlot

logger = logging.getLogger(__name__)


class BookingState(str, Enum):
    """All states of a booking flow within one conversation."""
    IDLE = "idle"
    DAYS_OFFERED = "days_offered"
    SLOTS_OFFERED = "slots_offered"
    FORM_OPEN = "form_open"
    SUBMITTING = "submitting"


class BookingTrigger(str, Enum):
    """Events that move the booking flow."""
    DAYS_RECEIVED = "days_received"
    DAY_SELECTED = "day_selected"
    SLOT_SELECTED = "slot_selected"
    FORM_INVALID = "form_invalid"
    FORM_SUBMITTED = "form_submitted"
    FORM_CANCELLED = "form_cancelled"
    BOOKING_CONFIRMED = "booking_confirmed"
    SLOT_TAKEN = "slot_taken"
    BOOKING_FAILED = "booking_failed"
    WIDGET_CLOSED = "widget_closed"


@dataclass(frozen=True)
class StateEntry:
    """Recorded history entry for a state visit."""
    state: BookingState
    entered_at: datetime
    trigger: Optional[BookingTrigger] = None


@dataclass(frozen=True)
class BookingSession:
    """Progress of the booking flow for one conversation."""
    state: BookingState = BookingState.IDLE
    offered_days: tuple[AvailableDay, ...] = ()
    selected_date: Optional[str] = None
    offered_slots: tuple[TimeSlot, ...] = ()
    selected_time: Optional[str] = None
    selected_display: Optional[str] = None
    form: FormFields = FormFields()
    form_errors: dict[str, str] = field(default_factory=dict)
    last_error: Optional[str] = None
    appointment_id: Optional[str] = None
    history: tuple[StateEntry, ...] = ()

    @property
    def form_visible(self) -> bool:
        return self.state == BookingState.FORM_OPEN

    def offered_dates(self) -> set[str]:
        return {d.date for d in self.offered_days}

    def offered_times(self) -> set[str]:
        return {s.time for s in self.offered_slots}


Guard = Callable[[BookingSession, dict[str, Any]], bool]


def _day_was_offered(session: BookingSession, changes: dict[str, Any]) -> bool:
    # A slot list for a day the visitor typed in brings that day along.
    offered = session.offered_dates() | {d.date for d in changes.get("offered_days", ())}
    return changes.get("selected_date") in offered


def _slot_was_offered(session: BookingSession, changes: dict[str, Any]) -> bool:
    same_day = changes.get("selected_date", session.selected_date) == session.selected_date
    return same_day and changes.get("selected_time") in session.offered_times()


@dataclass
class Transition:
    """A single valid state transition."""
    from_state: BookingState
    to_state: BookingState
    trigger: BookingTrigger
    guard: Optional[Guard] = None


# Fields reset on entering a state, before the caller's changes are applied.
_ON_ENTER: dict[BookingState, dict[str, Any]] = {
    BookingState.IDLE: {
        "offered_days": (),
        "selected_date": None,
        "offered_slots": (),
        "selected_time": None,
        "selected_display": None,
        "form": FormFields(),
        "form_errors": {},
        "last_error": None,
        "appointment_id": None,
    },
    BookingState.DAYS_OFFERED: {
        "selected_date": None,
        "offered_slots": (),
        "selected_time": None,
        "selected_display": None,
        "form_errors": {},
        "last_error": None,
        "appointment_id": None,
    },
    BookingState.SLOTS_OFFERED: {
        "selected_time": None,
        "selected_display": None,
        "form_errors": {},
        "last_error": None,
    },
    BookingState.FORM_OPEN: {
        "form_errors": {},
        "last_error": None,
    },
    BookingState.SUBMITTING: {},
}


class BookingStateMachine:
    """
    Deterministic reducer over ``BookingSession`` values.

    Every transition must be explicitly defined. A trigger that has no
    transition from the current state, or whose guard rejects the supplied
    changes, raises ``InvalidTransitionError`` naming the valid triggers.
    """

    TRANSITIONS: list[Transition] = [
        # --- Offering days (also restarts an unfinished flow) ---
        Transition(BookingState.IDLE, BookingState.DAYS_OFFERED,
                   BookingTrigger.DAYS_RECEIVED),
        Transition(BookingState.DAYS_OFFERED, BookingState.DAYS_OFFERED,
                   BookingTrigger.DAYS_RECEIVED),
        Transition(BookingState.SLOTS_OFFERED, BookingState.DAYS_OFFERED,
                   BookingTrigger.DAYS_RECEIVED),
        Transition(BookingState.FORM_OPEN, BookingState.DAYS_OFFERED,
                   BookingTrigger.DAYS_RECEIVED),

        # --- Day pills; picking a day while the form is open drops the form ---
        Transition(BookingState.DAYS_OFFERED, BookingState.SLOTS_OFFERED,
                   BookingTrigger.DAY_SELECTED, _day_was_offered),
        Transition(BookingState.SLOTS_OFFERED, BookingState.SLOTS_OFFERED,
                   BookingTrigger.DAY_SELECTED, _day_was_offered),
        Transition(BookingState.FORM_OPEN, BookingState.SLOTS_OFFERED,
                   BookingTrigger.DAY_SELECTED, _day_was_offered),

        # --- Time pills ---
        Transition(BookingState.SLOTS_OFFERED, BookingState.FORM_OPEN,
                   BookingTrigger.SLOT_SELECTED, _slot_was_offered),
        Transition(BookingState.FORM_OPEN, BookingState.FORM_OPEN,
                   BookingTrigger.SLOT_SELECTED, _slot_was_offered),

        # --- Inline form ---
        Transition(BookingState.FORM_OPEN, BookingState.FORM_OPEN,
                   BookingTrigger.FORM_INVALID),
        Transition(BookingState.FORM_OPEN, BookingState.SUBMITTING,
                   BookingTrigger.FORM_SUBMITTED),
        Transition(BookingState.FORM_OPEN, BookingState.IDLE,
                   BookingTrigger.FORM_CANCELLED),

        # --- Booking result ---
        Transition(BookingState.SUBMITTING, BookingState.IDLE,
                   BookingTrigger.BOOKING_CONFIRMED),
        Transition(BookingState.SUBMITTING, BookingState.SLOTS_OFFERED,
                   BookingTrigger.SLOT_TAKEN),
        Transition(BookingState.SUBMITTING, BookingState.IDLE,
                   BookingTrigger.BOOKING_FAILED),
    ] + [
        # --- Closing the widget abandons whatever was in progress ---
        Transition(state, BookingState.IDLE, BookingTrigger.WIDGET_CLOSED)
        for state in BookingState
    ]

    def new_session(self) -> BookingSession:
        return BookingSession(
            history=(StateEntry(state=BookingState.IDLE, entered_at=datetime.now(timezone.utc)),)
        )

    def transition(
        self, session: BookingSession, trigger: BookingTrigger, **changes: Any
    ) -> BookingSession:
        """
        Execute a state transition.

        Args:
            session: The current session value (left untouched).
            trigger: The event triggering the transition.
            **changes: Session fields to set on the new value.

        Returns:
            The new session.

        Raises:
            InvalidTransitionError: If no valid transition exists.
        """
        for t in self.TRANSITIONS:
            if t.from_state == session.state and t.trigger == trigger:
                if t.guard is not None and not t.guard(session, changes):
                    continue

                updates = {**_ON_ENTER[t.to_state], **changes}
                new_session = replace(
                    session,
                    state=t.to_state,
                    history=session.history + (
                        StateEntry(
                            state=t.to_state,
                            entered_at=datetime.now(timezone.utc),
                            trigger=trigger,
                        ),
                    ),
                    **updates,
                )

                logger.debug(
                    "Booking transition: %s -> %s (trigger: %s)",
                    session.state.value, new_session.state.value, trigger.value,
                )
                return new_session

        valid = [t.value for t in self.get_valid_triggers(session)]
        raise InvalidTransitionError(
            f"No valid transition from '{session.state.value}' "
            f"with trigger '{trigger.value}'. Valid triggers: {valid}"
        )

    def get_valid_triggers(self, session: BookingSession) -> list[BookingTrigger]:
        """Return all triggers defined from the session's state, without duplicates."""
        triggers: list[BookingTrigger] = []
        for t in self.TRANSITIONS:
            if t.from_state == session.state and t.trigger not in triggers:
                triggers.append(t.trigger)
        return triggers

    def can_transition(
        self, session: BookingSession, trigger: BookingTrigger, **changes: Any
    ) -> bool:
        return any(
            t.from_state == session.state
            and t.trigger == trigger
            and (t.guard is None or t.guard(session, changes))
            for t in self.TRANSITIONS
        )

    @staticmethod
    def get_state_trace(session: BookingSession) -> list[str]:
        """Return ordered list of state names visited."""
        return [entry.state.value for entry in session.history]
