"""
Scheduling service: one business's booking operations.

Glues the stored settings, the availability calculator, the appointment
store and the notifier behind the three facts the chat flow needs:
which days are open, which slots are free on a day, and "book this slot".
"""

from datetime import date, datetime, time, timezone
from typing import Callable, Optional

from booking_widget import notifications
from booking_widget.config import settings as app_settings
from booking_widget.errors import SlotConflictError
from booking_widget.logging_context import get_conversation_logger
from booking_widget.scheduling import availability
from booking_widget.scheduling.store import AppointmentStore
from booking_widget.schemas.scheduling_schema import (
    Appointment,
    AppointmentSettings,
    AppointmentStatus,
    Customer,
)
from booking_widget.schemas.ui_schema import AvailableDay, TimeSlot
from booking_widget.utils import format_hhmm, from_minutes, to_minutes

logger = get_conversation_logger(__name__)


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


class SchedulingService:
    """Availability queries and bookings for a single business identity."""

    def __init__(
        self,
        store: AppointmentStore,
        business_id: Optional[str] = None,
        notifier: Optional[notifications.Notifier] = None,
        clock: Optional[Callable[[], datetime]] = None,
    ) -> None:
        self.store = store
        self.business_id = business_id or app_settings.business.business_id
        self._notifier = notifier if notifier is not None else notifications.LoggingNotifier()
        self._clock = clock or _utc_now

    @property
    def settings(self) -> AppointmentSettings:
        return self.store.get_settings(self.business_id)

    def now(self) -> datetime:
        return self._clock()

    def available_days(
        self,
        now: Optional[datetime] = None,
        limit: Optional[int] = None,
        horizon_days: Optional[int] = None,
    ) -> list[AvailableDay]:
        """Upcoming days with at least one free slot."""
        config = self.settings
        now = now or self._clock()
        first, last = availability.booking_window(config, now)
        appointments = self.store.list_appointments(
            self.business_id, first, last, status=AppointmentStatus.CONFIRMED
        )
        return availability.available_days(
            config,
            self.store.list_blocked_slots(self.business_id),
            now,
            appointments=appointments,
            horizon_days=horizon_days,
            limit=limit,
        )

    def free_slots(self, day: date, now: Optional[datetime] = None) -> list[TimeSlot]:
        """Free slots on ``day``; an optimistic read, validated again at booking."""
        return availability.free_slots(
            self.settings,
            self.store.list_for_date(self.business_id, day),
            self.store.blocked_slots_for_date(self.business_id, day),
            day,
            now or self._clock(),
        )

    def check_slot(self, day: date, start_time: time, now: Optional[datetime] = None) -> bool:
        """Whether ``start_time`` on ``day`` is currently offered."""
        wanted = format_hhmm(start_time)
        return any(slot.time == wanted for slot in self.free_slots(day, now))

    def end_time_for(self, start_time: time) -> time:
        return from_minutes(to_minutes(start_time) + self.settings.default_duration)

    def book(
        self,
        day: date,
        start_time: time,
        customer: Customer,
        service: Optional[str] = None,
        notes: Optional[str] = None,
        conversation_id: Optional[str] = None,
    ) -> Appointment:
        """Book a slot of the default duration.

        Raises:
            SlotConflictError: the slot is outside the bookable window or was
                taken since it was offered.
        """
        config = self.settings
        if not self.check_slot(day, start_time):
            logger.warning("Slot %s %s is not bookable", day, format_hhmm(start_time))
            raise SlotConflictError(
                "This time slot is no longer available. Please choose another time."
            )

        appointment = self.store.create(
            self.business_id,
            day,
            start_time,
            self.end_time_for(start_time),
            customer,
            service=service,
            notes=notes,
            conversation_id=conversation_id,
        )
        self._notify(appointment, config)
        return appointment

    def cancel(self, appointment_id: str, reason: Optional[str] = None) -> Appointment:
        return self.store.cancel(appointment_id, reason)

    def upcoming(self, days: int = 7) -> list[Appointment]:
        """Confirmed appointments for the next ``days`` days (dashboard view)."""
        today = availability.local_now(self.settings, self._clock()).date()
        return self.store.list_upcoming(self.business_id, today, days)

    def todays_appointments(self) -> list[Appointment]:
        today = availability.local_now(self.settings, self._clock()).date()
        return [a for a in self.store.list_for_date(self.business_id, today) if a.is_active]

    def _notify(self, appointment: Appointment, config: AppointmentSettings) -> None:
        try:
            self._notifier.notify_booked(appointment, config)
        except Exception:
            logger.exception("Notification failed for %s; booking kept", appointment.id)
