"""Shared test fixtures and helpers."""

from datetime import date, datetime, time, timedelta
from typing import Optional
from zoneinfo import ZoneInfo

import httpx
import pytest

from booking_widget.conversation.state_machine import BookingStateMachine
from booking_widget.notifications import LoggingNotifier
from booking_widget.scheduling.service import SchedulingService
from booking_widget.scheduling.store import InMemoryAppointmentStore
from booking_widget.schemas.scheduling_schema import (
    Appointment,
    AppointmentSettings,
    AppointmentStatus,
    BlockedSlot,
    Customer,
)

TZ = ZoneInfo("America/Detroit")
BUSINESS_ID = "biz-test"

# 2024-06-03 is a Monday.
MONDAY = date(2024, 6, 3)
MONDAY_10AM = datetime(2024, 6, 3, 10, 0, tzinfo=TZ)


class FixedClock:
    """Callable clock that only moves when told to."""

    def __init__(self, now: datetime) -> None:
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> None:
        self.now += timedelta(**kwargs)


def make_settings(**overrides) -> AppointmentSettings:
    """Mon-Fri 9-17, 30 min slots, no buffer, 2h notice, 14 days ahead."""
    values = dict(
        business_id=BUSINESS_ID,
        business_name="Test Studio",
        timezone="America/Detroit",
        available_days=[1, 2, 3, 4, 5],
        start_hour=9,
        end_hour=17,
        default_duration=30,
        buffer_time=0,
        min_advance_hours=2,
        max_advance_days=14,
    )
    values.update(overrides)
    return AppointmentSettings(**values)


def make_appointment(
    day: date,
    start: time,
    end: time,
    status: AppointmentStatus = AppointmentStatus.CONFIRMED,
    appointment_id: str = "APT-TEST0001",
) -> Appointment:
    return Appointment(
        id=appointment_id,
        business_id=BUSINESS_ID,
        date=day,
        start_time=start,
        end_time=end,
        duration=(end.hour * 60 + end.minute) - (start.hour * 60 + start.minute),
        customer_name="Jane Doe",
        customer_email="jane@example.com",
        status=status,
        created_at=MONDAY_10AM,
        updated_at=MONDAY_10AM,
    )


def make_block(
    day: date,
    start: Optional[time] = None,
    end: Optional[time] = None,
    is_recurring: bool = False,
    recurring_days: Optional[list[int]] = None,
    block_id: str = "BLK-TEST0001",
) -> BlockedSlot:
    return BlockedSlot(
        id=block_id,
        business_id=BUSINESS_ID,
        date=day,
        start_time=start,
        end_time=end,
        is_recurring=is_recurring,
        recurring_days=recurring_days or [],
    )


def sse_body(*lines: str) -> bytes:
    return "".join(lines).encode()


def mock_client(handler) -> httpx.AsyncClient:
    return httpx.AsyncClient(transport=httpx.MockTransport(handler))


@pytest.fixture
def settings() -> AppointmentSettings:
    return make_settings()


@pytest.fixture
def clock() -> FixedClock:
    return FixedClock(MONDAY_10AM)


@pytest.fixture
def store(clock, settings) -> InMemoryAppointmentStore:
    store = InMemoryAppointmentStore(clock=clock)
    store.upsert_settings(settings)
    return store


@pytest.fixture
def notifier() -> LoggingNotifier:
    return LoggingNotifier()


@pytest.fixture
def service(store, notifier, clock) -> SchedulingService:
    return SchedulingService(store, business_id=BUSINESS_ID, notifier=notifier, clock=clock)


@pytest.fixture
def customer() -> Customer:
    return Customer(name="Jane Doe", email="jane@example.com", phone="5551234567")


@pytest.fixture
def machine() -> BookingStateMachine:
    return BookingStateMachine()
