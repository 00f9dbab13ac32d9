"""Tests for the scheduling service."""

import logging
from datetime import date, time

import pytest

from booking_widget.errors import NotificationError, SlotConflictError
from booking_widget.scheduling.service import SchedulingService
from booking_widget.schemas.scheduling_schema import AppointmentStatus, Customer
from booking_widget.utils import END_OF_DAY
from tests.conftest import BUSINESS_ID, MONDAY

TUESDAY = date(2024, 6, 4)


class FailingNotifier:
    def __init__(self) -> None:
        self.calls = 0

    def notify_booked(self, appointment, config) -> None:
        self.calls += 1
        raise NotificationError("smtp down")


class CrashingNotifier:
    def notify_booked(self, appointment, config) -> None:
        raise RuntimeError("template missing")


def _times(slots) -> list[str]:
    return [s.time for s in slots]


class TestQueries:
    def test_available_days_respects_limit(self, service):
        days = service.available_days(limit=3)
        assert [d.date for d in days] == ["2024-06-03", "2024-06-04", "2024-06-05"]

    def test_available_days_skip_fully_booked_day(self, service, customer):
        for slot in service.free_slots(TUESDAY):
            service.book(TUESDAY, time.fromisoformat(slot.time), customer)
        dates = [d.date for d in service.available_days(limit=3)]
        assert TUESDAY.isoformat() not in dates

    def test_free_slots_uses_store_settings(self, service, store, settings):
        store.upsert_settings(settings.model_copy(update={"start_hour": 13}))
        assert _times(service.free_slots(TUESDAY))[0] == "13:00"

    def test_check_slot(self, service):
        assert service.check_slot(TUESDAY, time(14, 0))
        assert not service.check_slot(TUESDAY, time(14, 15))
        assert not service.check_slot(MONDAY, time(10, 30))

    def test_end_time_for(self, service):
        assert service.end_time_for(time(16, 30)) == time(17, 0)

    def test_end_time_at_midnight(self, service, store, settings):
        store.upsert_settings(settings.model_copy(update={"start_hour": 18, "end_hour": 24}))
        assert service.end_time_for(time(23, 30)) == END_OF_DAY


class TestBook:
    def test_booked_slot_disappears_from_free_slots(self, service, customer):
        assert "14:00" in _times(service.free_slots(TUESDAY))
        appt = service.book(TUESDAY, time(14, 0), customer, service="Consultation")
        assert appt.end_time == time(14, 30)
        assert appt.service == "Consultation"
        assert "14:00" not in _times(service.free_slots(TUESDAY))

    def test_second_booking_of_same_slot_conflicts(self, service, customer):
        service.book(TUESDAY, time(14, 0), customer)
        with pytest.raises(SlotConflictError):
            service.book(TUESDAY, time(14, 0), Customer(name="Sam Lee", email="sam@example.com"))

    def test_slot_outside_window_is_not_bookable(self, service, customer):
        with pytest.raises(SlotConflictError):
            service.book(date(2024, 6, 8), time(10, 0), customer)  # Saturday
        with pytest.raises(SlotConflictError):
            service.book(MONDAY, time(10, 30), customer)  # inside advance notice

    def test_notifier_called_after_commit(self, service, notifier, customer):
        appt = service.book(TUESDAY, time(14, 0), customer)
        assert len(notifier.sent) == 1
        assert notifier.sent[0].to == "jane@example.com"
        assert appt.id in [a.id for a in service.upcoming()]

    def test_notifier_failure_keeps_booking(self, store, clock, customer, caplog):
        failing = FailingNotifier()
        svc = SchedulingService(store, business_id=BUSINESS_ID, notifier=failing, clock=clock)
        with caplog.at_level(logging.ERROR):
            appt = svc.book(TUESDAY, time(14, 0), customer)
        assert failing.calls == 1
        assert store.get(appt.id).status == AppointmentStatus.CONFIRMED
        assert "Notification failed" in caplog.text

    def test_unexpected_notifier_error_keeps_booking(self, store, clock, customer, caplog):
        svc = SchedulingService(store, business_id=BUSINESS_ID, notifier=CrashingNotifier(), clock=clock)
        with caplog.at_level(logging.ERROR):
            appt = svc.book(TUESDAY, time(14, 0), customer)
        assert store.get(appt.id).status == AppointmentStatus.CONFIRMED
        assert "Notification failed" in caplog.text

    def test_last_slot_before_midnight(self, service, store, settings, customer):
        store.upsert_settings(settings.model_copy(update={"start_hour": 18, "end_hour": 24}))
        appt = service.book(TUESDAY, time(23, 30), customer)
        assert appt.end_time == END_OF_DAY
        assert appt.duration == 30
        assert "23:30" not in _times(service.free_slots(TUESDAY))


class TestCancel:
    def test_cancelled_slot_reappears(self, service, customer, clock):
        appt = service.book(TUESDAY, time(14, 0), customer)
        assert "14:00" not in _times(service.free_slots(TUESDAY))

        cancelled = service.cancel(appt.id, reason="Visitor asked")
        assert cancelled.status == AppointmentStatus.CANCELLED
        assert cancelled.cancelled_at == clock.now
        assert "14:00" in _times(service.free_slots(TUESDAY))

    def test_upcoming_and_today(self, service, customer):
        today = service.book(MONDAY, time(15, 0), customer)
        later = service.book(TUESDAY, time(9, 0), customer)
        assert [a.id for a in service.upcoming()] == [today.id, later.id]
        assert [a.id for a in service.todays_appointments()] == [today.id]
