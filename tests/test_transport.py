"""Tests for the streaming chat transport."""

import json

import httpx
import pytest

from booking_widget.errors import TransportError
from booking_widget.schemas.conversation_schema import ChatMessage, Role
from booking_widget.schemas.ui_schema import (
    AvailableDay,
    AvailableDaysPayload,
    TimeSlot,
    TimeSlotsPayload,
)
from booking_widget.transport.client import ChatTransport
from booking_widget.transport.encoder import STREAM_HEADERS, encode_fragment, encode_reply
from tests.conftest import mock_client, sse_body

GATEWAY = "http://gateway.test/api/public-chat"
HISTORY = [
    ChatMessage(role=Role.ASSISTANT, content="Hi there!", is_greeting=True),
    ChatMessage(role=Role.USER, content="I want to book"),
]


def _stream_response(*events: str, status: int = 200) -> httpx.Response:
    return httpx.Response(status, headers=STREAM_HEADERS, content=sse_body(*events))


def _transport(handler, **kwargs) -> ChatTransport:
    return ChatTransport(base_url=GATEWAY, client=mock_client(handler), **kwargs)


class TestStream:
    @pytest.mark.asyncio
    async def test_fragments_arrive_in_order(self):
        def handler(request):
            return _stream_response(*encode_reply("Hello there friend"))

        transport = _transport(handler)
        contents = [f.content async for f in transport.stream(HISTORY)]
        assert contents == ["Hello", " there", " friend"]

    @pytest.mark.asyncio
    async def test_request_shape(self):
        seen = {}

        def handler(request):
            seen["method"] = request.method
            seen["url"] = str(request.url)
            seen["accept"] = request.headers["accept"]
            seen["body"] = json.loads(request.content)
            return _stream_response(*encode_reply("ok"))

        await _transport(handler).complete(HISTORY)
        assert seen["method"] == "POST"
        assert seen["url"] == GATEWAY
        assert seen["accept"] == "text/event-stream"
        assert seen["body"] == {
            "messages": [
                {"role": "assistant", "content": "Hi there!"},
                {"role": "user", "content": "I want to book"},
            ],
            "stream": True,
        }

    @pytest.mark.asyncio
    async def test_bearer_token_sent_when_configured(self):
        seen = {}

        def handler(request):
            seen["auth"] = request.headers.get("authorization")
            return _stream_response(*encode_reply("ok"))

        await _transport(handler, api_key="secret").complete(HISTORY)
        assert seen["auth"] == "Bearer secret"

    @pytest.mark.asyncio
    async def test_no_auth_header_without_key(self):
        seen = {}

        def handler(request):
            seen["auth"] = request.headers.get("authorization")
            return _stream_response(*encode_reply("ok"))

        await _transport(handler, api_key="").complete(HISTORY)
        assert seen["auth"] is None


class TestComplete:
    @pytest.mark.asyncio
    async def test_concatenates_content_and_attaches_ui(self):
        payload = AvailableDaysPayload(
            days=[AvailableDay(date="2024-06-04", display="Tue, Jun 4", day_name="Tue")]
        )

        def handler(request):
            return _stream_response(*encode_reply("Pick a day below.", payload))

        reply = await _transport(handler).complete(HISTORY)
        assert reply.content == "Pick a day below."
        assert reply.ui_component == payload

    @pytest.mark.asyncio
    async def test_last_ui_component_wins(self):
        first = TimeSlotsPayload(date="2024-06-04", slots=[TimeSlot(time="09:00", display="9:00 AM")])
        second = TimeSlotsPayload(date="2024-06-05", slots=[TimeSlot(time="10:00", display="10:00 AM")])

        def handler(request):
            return _stream_response(
                encode_fragment(ui_component=first),
                encode_fragment(content="Times"),
                encode_fragment(ui_component=second),
                "data: [DONE]\n\n",
            )

        reply = await _transport(handler).complete(HISTORY)
        assert reply.ui_component == second
        assert reply.content == "Times"

    @pytest.mark.asyncio
    async def test_malformed_lines_are_skipped(self):
        def handler(request):
            return _stream_response(
                ": comment\n\n",
                "data: {broken\n\n",
                encode_fragment(content="ok"),
                "data: [DONE]\n\n",
            )

        reply = await _transport(handler).complete(HISTORY)
        assert reply.content == "ok"


class TestFailures:
    @pytest.mark.asyncio
    @pytest.mark.parametrize("status", [400, 500, 503])
    async def test_non_success_status_raises(self, status):
        def handler(request):
            return httpx.Response(status, json={"error": "Failed to process chat"})

        with pytest.raises(TransportError, match=str(status)):
            await _transport(handler).complete(HISTORY)

    @pytest.mark.asyncio
    async def test_timeout_raises_transport_error(self):
        def handler(request):
            raise httpx.ReadTimeout("too slow", request=request)

        with pytest.raises(TransportError, match="timed out"):
            await _transport(handler, timeout=0.5).complete(HISTORY)

    @pytest.mark.asyncio
    async def test_connection_error_raises_transport_error(self):
        def handler(request):
            raise httpx.ConnectError("refused", request=request)

        with pytest.raises(TransportError, match="request failed"):
            await _transport(handler).complete(HISTORY)


class TestLifecycle:
    @pytest.mark.asyncio
    async def test_injected_client_is_not_closed(self):
        client = mock_client(lambda request: _stream_response(*encode_reply("ok")))
        async with ChatTransport(base_url=GATEWAY, client=client) as transport:
            await transport.complete(HISTORY)
        assert not client.is_closed
        await client.aclose()

    def test_defaults_come_from_settings(self):
        transport = ChatTransport(client=mock_client(lambda request: httpx.Response(200)))
        assert transport.base_url.endswith("/api/public-chat")
        assert transport.timeout == 30.0
