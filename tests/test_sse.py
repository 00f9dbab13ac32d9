"""Tests for SSE stream parsing and encoding."""

import json

import pytest
from pydantic import ValidationError

from booking_widget.schemas.ui_schema import (
    AvailableDay,
    AvailableDaysPayload,
    TimeSlot,
    TimeSlotsPayload,
)
from booking_widget.transport.encoder import (
    STREAM_HEADERS,
    encode_done,
    encode_fragment,
    encode_reply,
)
from booking_widget.transport.sse import aiter_fragments, iter_fragments, parse_line

DAYS_PAYLOAD = AvailableDaysPayload(
    days=[AvailableDay(date="2024-06-04", display="Tue, Jun 4", day_name="Tue")]
)


async def _agen(lines):
    for line in lines:
        yield line


class TestParseLine:
    def test_content_fragment(self):
        fragment = parse_line('data: {"content": "Hello"}')
        assert fragment.content == "Hello"
        assert fragment.ui_component is None

    def test_ui_component_fragment(self):
        line = (
            'data: {"uiComponent": {"type": "time_slots", "date": "2024-06-04", '
            '"slots": [{"time": "09:00", "display": "9:00 AM"}]}}'
        )
        fragment = parse_line(line)
        assert isinstance(fragment.ui_component, TimeSlotsPayload)
        assert fragment.ui_component.slots[0].time == "09:00"

    def test_day_name_accepts_camel_case(self):
        line = (
            'data: {"uiComponent": {"type": "available_days", "days": '
            '[{"date": "2024-06-04", "display": "Tue, Jun 4", "dayName": "Tue"}]}}'
        )
        assert parse_line(line).ui_component.days[0].day_name == "Tue"

    @pytest.mark.parametrize(
        "line",
        [
            "",
            ": keep-alive",
            "event: message",
            "data:",
            "data: {not json",
            'data: {"uiComponent": {"type": "calendar"}}',
        ],
    )
    def test_lines_without_payload_are_skipped(self, line):
        assert parse_line(line) is None

    @pytest.mark.parametrize(
        "payload",
        [
            {"type": "time_slots", "date": "June 4", "slots": []},
            {"type": "time_slots", "date": "2024-02-30", "slots": []},
            {"type": "time_slots", "date": "2024-06-04", "slots": [{"time": "9am", "display": "9 AM"}]},
            {"type": "time_slots", "date": "2024-06-04", "slots": [{"time": "25:00", "display": "?"}]},
            {"type": "available_days", "days": [{"date": "tomorrow", "display": "Tomorrow", "dayName": "Wed"}]},
        ],
    )
    def test_malformed_dates_and_times_are_skipped(self, payload):
        assert parse_line("data: " + json.dumps({"uiComponent": payload})) is None

    def test_single_digit_hour_is_rejected(self):
        with pytest.raises(ValidationError):
            TimeSlot(time="9:00", display="9:00 AM")


class TestIterFragments:
    def test_stops_at_done_marker(self):
        lines = [
            'data: {"content": "Hi"}',
            "",
            "data: [DONE]",
            'data: {"content": "ignored"}',
        ]
        assert [f.content for f in iter_fragments(lines)] == ["Hi"]

    def test_stream_may_end_without_done(self):
        lines = ['data: {"content": "a"}', 'data: {"content": "b"}']
        assert [f.content for f in iter_fragments(lines)] == ["a", "b"]

    def test_malformed_line_does_not_stop_stream(self):
        lines = ['data: {"content": "a"}', "data: {oops", 'data: {"content": "b"}']
        assert [f.content for f in iter_fragments(lines)] == ["a", "b"]

    @pytest.mark.asyncio
    async def test_async_variant(self):
        lines = ['data: {"content": "a"}', ": ping", "data: [DONE]"]
        fragments = [f async for f in aiter_fragments(_agen(lines))]
        assert [f.content for f in fragments] == ["a"]


class TestEncoder:
    def test_fragment_format(self):
        assert encode_fragment(content="Hi") == 'data: {"content": "Hi"}\n\n'

    def test_ui_component_uses_wire_names(self):
        event = encode_fragment(ui_component=DAYS_PAYLOAD)
        payload = json.loads(event[len("data: "):])
        assert payload["uiComponent"]["days"][0]["dayName"] == "Tue"

    def test_done(self):
        assert encode_done() == "data: [DONE]\n\n"

    def test_reply_sends_ui_first_then_words_then_done(self):
        events = list(encode_reply("Pick a day", DAYS_PAYLOAD))
        assert "uiComponent" in events[0]
        assert events[-1] == encode_done()
        words = [json.loads(e[len("data: "):])["content"] for e in events[1:-1]]
        assert words == ["Pick", " a", " day"]

    def test_reply_without_chunking(self):
        events = list(encode_reply("Pick a day", chunk_words=False))
        assert events == [encode_fragment(content="Pick a day"), encode_done()]

    def test_encoded_reply_parses_back(self):
        lines = "".join(encode_reply("Pick a day", DAYS_PAYLOAD)).splitlines()
        fragments = list(iter_fragments(lines))
        assert "".join(f.content or "" for f in fragments) == "Pick a day"
        assert fragments[0].ui_component == DAYS_PAYLOAD

    def test_stream_headers(self):
        assert STREAM_HEADERS["Content-Type"] == "text/event-stream"
        assert "no-cache" in STREAM_HEADERS["Cache-Control"]

    def test_empty_reply_is_just_done(self):
        slots = TimeSlotsPayload(date="2024-06-04", slots=[TimeSlot(time="09:00", display="9:00 AM")])
        events = list(encode_reply("", slots))
        assert len(events) == 2
        assert events[-1] == encode_done()
