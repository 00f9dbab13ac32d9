"""Appointment, settings and blocked-slot data models."""

from datetime import date, datetime, time
from enum import Enum
from typing import Literal, Optional
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from pydantic import BaseModel, Field, field_validator, model_validator

from booking_widget.utils import weekday_index


class AppointmentStatus(str, Enum):
    """Lifecycle status of an appointment. Only CONFIRMED holds a slot."""

    CONFIRMED = "confirmed"
    CANCELLED = "cancelled"
    COMPLETED = "completed"
    NO_SHOW = "no_show"


def _check_weekdays(days: list[int]) -> list[int]:
    bad = [d for d in days if not 0 <= d <= 6]
    if bad:
        raise ValueError(f"weekday numbers must be 0-6 (0=Sunday), got {bad}")
    return sorted(set(days))


class AppointmentSettings(BaseModel):
    """Per-business booking rules."""

    business_id: str
    business_name: str = ""
    timezone: str = "UTC"
    available_days: list[int] = Field(default_factory=lambda: [1, 2, 3, 4, 5])
    start_hour: int = 9
    end_hour: int = 17
    default_duration: int = 30
    buffer_time: int = 0
    min_advance_hours: int = 0
    max_advance_days: int = 30
    notify_email: bool = True
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    @field_validator("timezone")
    @classmethod
    def _known_timezone(cls, value: str) -> str:
        try:
            ZoneInfo(value)
        except (ZoneInfoNotFoundError, ValueError):
            raise ValueError(f"unknown timezone: {value!r}") from None
        return value

    @field_validator("available_days")
    @classmethod
    def _valid_weekdays(cls, value: list[int]) -> list[int]:
        return _check_weekdays(value)

    @model_validator(mode="after")
    def _check_ranges(self) -> "AppointmentSettings":
        if not 0 <= self.start_hour < self.end_hour <= 24:
            raise ValueError(
                f"start_hour must be before end_hour within 0-24, "
                f"got {self.start_hour}-{self.end_hour}"
            )
        if self.default_duration <= 0:
            raise ValueError(f"default_duration must be > 0, got {self.default_duration}")
        if self.buffer_time < 0:
            raise ValueError(f"buffer_time must be >= 0, got {self.buffer_time}")
        if self.min_advance_hours < 0:
            raise ValueError(f"min_advance_hours must be >= 0, got {self.min_advance_hours}")
        if self.max_advance_days < 0:
            raise ValueError(f"max_advance_days must be >= 0, got {self.max_advance_days}")
        return self

    @property
    def tzinfo(self) -> ZoneInfo:
        return ZoneInfo(self.timezone)


class Customer(BaseModel):
    """Contact details captured by the inline booking form."""

    name: str
    email: str
    phone: Optional[str] = None


class Appointment(BaseModel):
    """A booked (or formerly booked) appointment. Never hard-deleted."""

    id: str
    business_id: str
    date: date
    start_time: time
    end_time: time
    duration: int
    customer_name: str
    customer_email: str
    customer_phone: Optional[str] = None
    service: Optional[str] = None
    notes: Optional[str] = None
    status: AppointmentStatus = AppointmentStatus.CONFIRMED
    cancelled_at: Optional[datetime] = None
    cancel_reason: Optional[str] = None
    booked_via: Literal["ai_chatbot"] = "ai_chatbot"
    conversation_id: Optional[str] = None
    created_at: datetime
    updated_at: datetime

    @property
    def is_active(self) -> bool:
        """Whether this appointment still holds its slot."""
        return self.status == AppointmentStatus.CONFIRMED


class BlockedSlot(BaseModel):
    """Owner-defined unavailability: a holiday, vacation or weekly break."""

    id: str
    business_id: str
    date: date
    start_time: Optional[time] = None
    end_time: Optional[time] = None
    reason: Optional[str] = None
    is_recurring: bool = False
    recurring_days: list[int] = Field(default_factory=list)
    created_at: Optional[datetime] = None

    @field_validator("recurring_days")
    @classmethod
    def _valid_weekdays(cls, value: list[int]) -> list[int]:
        return _check_weekdays(value)

    @model_validator(mode="after")
    def _check_window(self) -> "BlockedSlot":
        if (self.start_time is None) != (self.end_time is None):
            raise ValueError("start_time and end_time must be given together")
        if self.start_time is not None and self.end_time is not None:
            if self.start_time >= self.end_time:
                raise ValueError("start_time must be before end_time")
        return self

    @property
    def is_full_day(self) -> bool:
        return self.start_time is None

    def applies_to(self, day: date) -> bool:
        """Whether this block removes availability on ``day``.

        A recurring block repeats weekly from its start date onwards, on
        ``recurring_days`` or, when none are listed, on its own weekday.
        """
        if not self.is_recurring:
            return day == self.date
        if day < self.date:
            return False
        days = self.recurring_days or [weekday_index(self.date)]
        return weekday_index(day) in days
