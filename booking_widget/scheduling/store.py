"""
Appointment persistence with write-time conflict checking.

``AppointmentStore`` is the persistence seam; the hosted database lives
behind it in production. ``InMemoryAppointmentStore`` is the in-process
implementation used by the console demo and the test suite.

The write path is the only guard against double booking: ``create``
re-checks the requested interval against confirmed appointments and
blocked slots while holding a per-(business, date) lock, so the check and
the insert happen as one step. Reads never lock; a slot list shown to a
visitor may go stale and is only re-validated here.
"""

import logging
import threading
import uuid
from abc import ABC, abstractmethod
from collections import defaultdict
from datetime import date, datetime, time, timedelta, timezone
from typing import Callable, Optional

from booking_widget.config import settings as app_settings
from booking_widget.errors import (
    AppointmentNotFoundError,
    BookingValidationError,
    InvalidTransitionError,
    SlotConflictError,
)
from booking_widget.scheduling.availability import find_conflict
from booking_widget.schemas.scheduling_schema import (
    Appointment,
    AppointmentSettings,
    AppointmentStatus,
    BlockedSlot,
    Customer,
)
from booking_widget.utils import format_hhmm, to_minutes

logger = logging.getLogger(__name__)

Clock = Callable[[], datetime]


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


def default_settings(business_id: str) -> AppointmentSettings:
    """Settings for a business that has not saved its own, taken from config."""
    sched = app_settings.scheduling
    return AppointmentSettings(
        business_id=business_id,
        business_name=app_settings.business.name,
        timezone=app_settings.business.timezone,
        available_days=list(sched.available_days),
        start_hour=sched.start_hour,
        end_hour=sched.end_hour,
        default_duration=sched.default_duration,
        buffer_time=sched.buffer_time,
        min_advance_hours=sched.min_advance_hours,
        max_advance_days=sched.max_advance_days,
    )


class AppointmentStore(ABC):
    """Persistence abstraction for settings, appointments and blocked slots."""

    # --- Settings ---

    @abstractmethod
    def get_settings(self, business_id: str) -> AppointmentSettings:
        """Stored settings, or configured defaults when none were saved."""

    @abstractmethod
    def upsert_settings(self, new_settings: AppointmentSettings) -> AppointmentSettings:
        """Create or replace a business's settings."""

    # --- Appointments ---

    @abstractmethod
    def get(self, appointment_id: str) -> Appointment:
        """Fetch one appointment. Raises AppointmentNotFoundError."""

    @abstractmethod
    def list_for_date(self, business_id: str, day: date) -> list[Appointment]:
        """All appointments on a date, any status, in start-time order."""

    @abstractmethod
    def list_appointments(
        self,
        business_id: str,
        start_date: Optional[date] = None,
        end_date: Optional[date] = None,
        status: Optional[AppointmentStatus] = None,
    ) -> list[Appointment]:
        """Appointments in an inclusive date range, sorted by date then start."""

    @abstractmethod
    def create(
        self,
        business_id: str,
        day: date,
        start_time: time,
        end_time: time,
        customer: Customer,
        service: Optional[str] = None,
        notes: Optional[str] = None,
        conversation_id: Optional[str] = None,
    ) -> Appointment:
        """Insert a confirmed appointment. Raises SlotConflictError."""

    @abstractmethod
    def cancel(self, appointment_id: str, reason: Optional[str] = None) -> Appointment:
        """Cancel a confirmed appointment. Raises InvalidTransitionError."""

    @abstractmethod
    def mark_completed(self, appointment_id: str) -> Appointment:
        """Close out a confirmed appointment that took place."""

    @abstractmethod
    def mark_no_show(self, appointment_id: str) -> Appointment:
        """Close out a confirmed appointment the customer missed."""

    def list_upcoming(self, business_id: str, today: date, days: int = 7) -> list[Appointment]:
        """Confirmed appointments from ``today`` through ``today + days``."""
        return self.list_appointments(
            business_id,
            start_date=today,
            end_date=today + timedelta(days=days),
            status=AppointmentStatus.CONFIRMED,
        )

    # --- Blocked slots ---

    @abstractmethod
    def add_blocked_slot(
        self,
        business_id: str,
        day: date,
        start_time: Optional[time] = None,
        end_time: Optional[time] = None,
        reason: Optional[str] = None,
        is_recurring: bool = False,
        recurring_days: Optional[list[int]] = None,
    ) -> BlockedSlot:
        """Block a whole day (no times) or a window on it."""

    @abstractmethod
    def remove_blocked_slot(self, slot_id: str) -> None:
        """Delete a blocked slot. Raises AppointmentNotFoundError."""

    @abstractmethod
    def list_blocked_slots(self, business_id: str) -> list[BlockedSlot]:
        """Every blocked slot for a business, recurring ones included."""

    def blocked_slots_for_date(self, business_id: str, day: date) -> list[BlockedSlot]:
        """Blocked slots, one-off and recurring, that apply to ``day``."""
        return [b for b in self.list_blocked_slots(business_id) if b.applies_to(day)]


class InMemoryAppointmentStore(AppointmentStore):
    """Thread-safe in-process store.

    Writes for the same (business, date) are serialized by a dedicated lock;
    writes on different dates proceed independently.
    """

    def __init__(
        self,
        clock: Optional[Clock] = None,
        settings_factory: Callable[[str], AppointmentSettings] = default_settings,
    ) -> None:
        self._clock = clock or _utc_now
        self._settings_factory = settings_factory
        self._settings: dict[str, AppointmentSettings] = {}
        self._appointments: dict[str, Appointment] = {}
        self._by_date: dict[tuple[str, date], list[str]] = defaultdict(list)
        self._blocked: dict[str, BlockedSlot] = {}
        self._date_locks: dict[tuple[str, date], threading.Lock] = {}
        self._registry_lock = threading.Lock()

    def _lock_for(self, business_id: str, day: date) -> threading.Lock:
        with self._registry_lock:
            key = (business_id, day)
            if key not in self._date_locks:
                self._date_locks[key] = threading.Lock()
            return self._date_locks[key]

    # ------------------------------------------------------------------ #
    # Settings
    # ------------------------------------------------------------------ #

    def get_settings(self, business_id: str) -> AppointmentSettings:
        stored = self._settings.get(business_id)
        if stored is None:
            return self._settings_factory(business_id)
        return stored

    def upsert_settings(self, new_settings: AppointmentSettings) -> AppointmentSettings:
        now = self._clock()
        existing = self._settings.get(new_settings.business_id)
        saved = new_settings.model_copy(
            update={
                "created_at": existing.created_at if existing else now,
                "updated_at": now,
            }
        )
        self._settings[saved.business_id] = saved
        logger.info("Appointment settings saved for %s", saved.business_id)
        return saved

    # ------------------------------------------------------------------ #
    # Appointments
    # ------------------------------------------------------------------ #

    def get(self, appointment_id: str) -> Appointment:
        try:
            return self._appointments[appointment_id]
        except KeyError:
            raise AppointmentNotFoundError(f"Appointment {appointment_id} not found") from None

    def list_for_date(self, business_id: str, day: date) -> list[Appointment]:
        ids = list(self._by_date.get((business_id, day), []))
        return sorted((self._appointments[i] for i in ids), key=lambda a: a.start_time)

    def list_appointments(
        self,
        business_id: str,
        start_date: Optional[date] = None,
        end_date: Optional[date] = None,
        status: Optional[AppointmentStatus] = None,
    ) -> list[Appointment]:
        results = [
            a
            for a in list(self._appointments.values())
            if a.business_id == business_id
            and (start_date is None or a.date >= start_date)
            and (end_date is None or a.date <= end_date)
            and (status is None or a.status == status)
        ]
        return sorted(results, key=lambda a: (a.date, a.start_time))

    def create(
        self,
        business_id: str,
        day: date,
        start_time: time,
        end_time: time,
        customer: Customer,
        service: Optional[str] = None,
        notes: Optional[str] = None,
        conversation_id: Optional[str] = None,
    ) -> Appointment:
        if end_time <= start_time:
            raise BookingValidationError({"time": "The appointment must end after it starts."})

        config = self.get_settings(business_id)
        with self._lock_for(business_id, day):
            conflict_id = find_conflict(
                to_minutes(start_time),
                to_minutes(end_time),
                self.list_for_date(business_id, day),
                self.blocked_slots_for_date(business_id, day),
                config.buffer_time,
            )
            if conflict_id is not None:
                logger.warning(
                    "Slot conflict for %s on %s at %s (taken by %s)",
                    business_id, day, format_hhmm(start_time), conflict_id,
                )
                raise SlotConflictError(
                    "This time slot is no longer available. Please choose another time.",
                    conflicting_id=conflict_id,
                )

            now = self._clock()
            appointment = Appointment(
                id=f"APT-{uuid.uuid4().hex[:8].upper()}",
                business_id=business_id,
                date=day,
                start_time=start_time,
                end_time=end_time,
                duration=to_minutes(end_time) - to_minutes(start_time),
                customer_name=customer.name,
                customer_email=customer.email,
                customer_phone=customer.phone,
                service=service,
                notes=notes,
                conversation_id=conversation_id,
                created_at=now,
                updated_at=now,
            )
            self._appointments[appointment.id] = appointment
            self._by_date[(business_id, day)].append(appointment.id)

        logger.info(
            "Appointment created: %s for %s on %s at %s",
            appointment.id, customer.name, day, format_hhmm(start_time),
        )
        return appointment

    def _close(self, appointment_id: str, status: AppointmentStatus, **changes) -> Appointment:
        current = self.get(appointment_id)
        with self._lock_for(current.business_id, current.date):
            current = self._appointments[appointment_id]
            if current.status != AppointmentStatus.CONFIRMED:
                raise InvalidTransitionError(
                    f"Appointment {appointment_id} is '{current.status.value}'; "
                    f"only confirmed appointments can become '{status.value}'"
                )
            updated = current.model_copy(
                update={"status": status, "updated_at": self._clock(), **changes}
            )
            self._appointments[appointment_id] = updated
        logger.info("Appointment %s: %s -> %s", appointment_id, current.status.value, status.value)
        return updated

    def cancel(self, appointment_id: str, reason: Optional[str] = None) -> Appointment:
        return self._close(
            appointment_id,
            AppointmentStatus.CANCELLED,
            cancelled_at=self._clock(),
            cancel_reason=reason,
        )

    def mark_completed(self, appointment_id: str) -> Appointment:
        return self._close(appointment_id, AppointmentStatus.COMPLETED)

    def mark_no_show(self, appointment_id: str) -> Appointment:
        return self._close(appointment_id, AppointmentStatus.NO_SHOW)

    # ------------------------------------------------------------------ #
    # Blocked slots
    # ------------------------------------------------------------------ #

    def add_blocked_slot(
        self,
        business_id: str,
        day: date,
        start_time: Optional[time] = None,
        end_time: Optional[time] = None,
        reason: Optional[str] = None,
        is_recurring: bool = False,
        recurring_days: Optional[list[int]] = None,
    ) -> BlockedSlot:
        slot = BlockedSlot(
            id=f"BLK-{uuid.uuid4().hex[:8].upper()}",
            business_id=business_id,
            date=day,
            start_time=start_time,
            end_time=end_time,
            reason=reason,
            is_recurring=is_recurring,
            recurring_days=recurring_days or [],
            created_at=self._clock(),
        )
        self._blocked[slot.id] = slot
        logger.info("Blocked slot added: %s for %s on %s", slot.id, business_id, day)
        return slot

    def remove_blocked_slot(self, slot_id: str) -> None:
        if self._blocked.pop(slot_id, None) is None:
            raise AppointmentNotFoundError(f"Blocked slot {slot_id} not found")
        logger.info("Blocked slot removed: %s", slot_id)

    def list_blocked_slots(self, business_id: str) -> list[BlockedSlot]:
        return [b for b in list(self._blocked.values()) if b.business_id == business_id]
