"""Gateway-side encoding of assistant replies into the SSE stream format."""

import json
from typing import Iterator, Optional

from booking_widget.schemas.ui_schema import UIComponent
from booking_widget.transport.sse import DONE_MARKER

STREAM_HEADERS = {
    "Content-Type": "text/event-stream",
    "Cache-Control": "no-cache, no-transform",
    "Connection": "keep-alive",
    "X-Accel-Buffering": "no",
}


def encode_fragment(
    content: Optional[str] = None, ui_component: Optional[UIComponent] = None
) -> str:
    """Format a single ``data:`` event."""
    data: dict = {}
    if content is not None:
        data["content"] = content
    if ui_component is not None:
        data["uiComponent"] = ui_component.model_dump(by_alias=True)
    return f"data: {json.dumps(data)}\n\n"


def encode_done() -> str:
    return f"data: {DONE_MARKER}\n\n"


def encode_reply(
    content: str,
    ui_component: Optional[UIComponent] = None,
    chunk_words: bool = True,
) -> Iterator[str]:
    """Stream a full reply: UI component first, then the text, then the end marker."""
    if ui_component is not None:
        yield encode_fragment(ui_component=ui_component)

    if content and chunk_words:
        words = content.split(" ")
        for i, word in enumerate(words):
            yield encode_fragment(content=word if i == 0 else f" {word}")
    elif content:
        yield encode_fragment(content=content)

    yield encode_done()
