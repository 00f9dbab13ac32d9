"""
Streaming client for the conversational gateway.

Posts the chat history and consumes the reply as a server-sent event
stream. Any failure (non-2xx status, timeout, broken stream) surfaces as
``TransportError``; the client never retries on its own.
"""

from typing import AsyncIterator, Optional, Sequence

import httpx

from booking_widget.config import settings
from booking_widget.errors import TransportError
from booking_widget.logging_context import get_conversation_logger
from booking_widget.schemas.conversation_schema import ChatMessage
from booking_widget.schemas.ui_schema import AssistantReply, StreamFragment
from booking_widget.transport.sse import aiter_fragments

logger = get_conversation_logger(__name__)


class ChatTransport:
    """Sends chat history to the gateway and reads the streamed reply."""

    def __init__(
        self,
        base_url: Optional[str] = None,
        timeout: Optional[float] = None,
        client: Optional[httpx.AsyncClient] = None,
        api_key: Optional[str] = None,
    ) -> None:
        """
        Args:
            base_url: Gateway endpoint; defaults to ``CHAT_GATEWAY_URL``.
            timeout: Seconds before a request is abandoned; defaults to
                ``CHAT_TIMEOUT_SECONDS``.
            client: Pre-built client, e.g. one wired to ``httpx.MockTransport``.
            api_key: Optional bearer token for the gateway.
        """
        self.base_url = base_url or settings.transport.gateway_url
        self.timeout = timeout if timeout is not None else settings.transport.timeout_seconds
        self._headers = {
            "Content-Type": "application/json",
            "Accept": "text/event-stream",
        }
        api_key = api_key if api_key is not None else settings.transport.api_key
        if api_key:
            self._headers["Authorization"] = f"Bearer {api_key}"
        self._owns_client = client is None
        self._client = client or httpx.AsyncClient(timeout=self.timeout)

    async def stream(self, messages: Sequence[ChatMessage]) -> AsyncIterator[StreamFragment]:
        """Yield reply fragments as they arrive.

        Raises:
            TransportError: the gateway rejected the request, timed out or
                dropped the stream.
        """
        body = {"messages": [m.to_wire() for m in messages], "stream": True}
        try:
            async with self._client.stream(
                "POST",
                self.base_url,
                json=body,
                headers=self._headers,
                timeout=self.timeout,
            ) as response:
                if not response.is_success:
                    await response.aread()
                    logger.warning("Chat gateway returned HTTP %d", response.status_code)
                    raise TransportError(f"Chat gateway returned HTTP {response.status_code}")
                async for fragment in aiter_fragments(response.aiter_lines()):
                    yield fragment
        except httpx.TimeoutException as e:
            logger.warning("Chat gateway timed out after %.1fs", self.timeout)
            raise TransportError(f"Chat gateway timed out after {self.timeout}s") from e
        except httpx.HTTPError as e:
            logger.warning("Chat gateway request failed: %s", e)
            raise TransportError(f"Chat gateway request failed: {e}") from e

    async def complete(self, messages: Sequence[ChatMessage]) -> AssistantReply:
        """Consume the whole stream into one reply.

        Content fragments are concatenated in order; the last UI component
        seen wins and is only attached once the stream has ended.
        """
        parts: list[str] = []
        ui_component = None
        async for fragment in self.stream(messages):
            if fragment.content:
                parts.append(fragment.content)
            if fragment.ui_component is not None:
                ui_component = fragment.ui_component
        reply = AssistantReply(content="".join(parts), ui_component=ui_component)
        logger.debug(
            "Assistant reply: %d chars, ui=%s",
            len(reply.content),
            reply.ui_component.type if reply.ui_component else None,
        )
        return reply

    async def aclose(self) -> None:
        if self._owns_client:
            await self._client.aclose()

    async def __aenter__(self) -> "ChatTransport":
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.aclose()
