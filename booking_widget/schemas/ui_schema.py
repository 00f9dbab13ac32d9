"""Wire contract for the structured UI payloads streamed to the chat widget.

Field names are snake_case in Python and camelCase on the wire
(``dayName``, ``uiComponent``); models accept either on input.
"""

import re
from datetime import date as _date, datetime
from typing import Annotated, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, field_validator

_ISO_DATE = re.compile(r"\d{4}-\d{2}-\d{2}")
_HHMM = re.compile(r"\d{2}:\d{2}")


def _check_iso_date(value: str) -> str:
    if not _ISO_DATE.fullmatch(value):
        raise ValueError(f"expected YYYY-MM-DD, got {value!r}")
    _date.fromisoformat(value)
    return value


def _check_hhmm(value: str) -> str:
    if not _HHMM.fullmatch(value):
        raise ValueError(f"expected HH:MM, got {value!r}")
    datetime.strptime(value, "%H:%M")
    return value


class AvailableDay(BaseModel):
    """One selectable day pill."""

    model_config = ConfigDict(populate_by_name=True)

    date: str
    display: str
    day_name: str = Field(alias="dayName")

    @field_validator("date")
    @classmethod
    def _valid_date(cls, value: str) -> str:
        return _check_iso_date(value)


class TimeSlot(BaseModel):
    """One selectable time pill."""

    time: str
    display: str

    @field_validator("time")
    @classmethod
    def _valid_time(cls, value: str) -> str:
        return _check_hhmm(value)


class AvailableDaysPayload(BaseModel):
    type: Literal["available_days"] = "available_days"
    days: list[AvailableDay] = Field(default_factory=list)


class TimeSlotsPayload(BaseModel):
    type: Literal["time_slots"] = "time_slots"
    date: str
    slots: list[TimeSlot] = Field(default_factory=list)

    @field_validator("date")
    @classmethod
    def _valid_date(cls, value: str) -> str:
        return _check_iso_date(value)


UIComponent = Annotated[
    Union[AvailableDaysPayload, TimeSlotsPayload],
    Field(discriminator="type"),
]


class StreamFragment(BaseModel):
    """A single ``data:`` event from the chat gateway."""

    model_config = ConfigDict(populate_by_name=True)

    content: Optional[str] = None
    ui_component: Optional[UIComponent] = Field(default=None, alias="uiComponent")


class AssistantReply(BaseModel):
    """A fully consumed assistant turn."""

    content: str = ""
    ui_component: Optional[UIComponent] = None
