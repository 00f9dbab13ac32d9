"""
Server-sent events framing for the chat gateway stream.

The gateway sends one JSON object per ``data:`` line and ends the stream
with ``data: [DONE]``. Parsing is line-oriented and lazy so the widget can
render content as it arrives.
"""

import json
import logging
from typing import AsyncIterable, AsyncIterator, Iterable, Iterator, Optional

from pydantic import ValidationError

from booking_widget.schemas.ui_schema import StreamFragment

logger = logging.getLogger(__name__)

DATA_PREFIX = "data:"
DONE_MARKER = "[DONE]"


class _Done(Exception):
    pass


def parse_line(line: str) -> Optional[StreamFragment]:
    """Parse one stream line into a fragment.

    Returns ``None`` for lines that carry nothing (blank lines, comments,
    other SSE fields, malformed JSON). Raises ``_Done`` at the end marker.
    """
    line = line.strip()
    if not line.startswith(DATA_PREFIX):
        return None

    payload = line[len(DATA_PREFIX):].strip()
    if payload == DONE_MARKER:
        raise _Done()
    if not payload:
        return None

    try:
        return StreamFragment.model_validate(json.loads(payload))
    except (json.JSONDecodeError, ValidationError) as e:
        logger.debug("Skipping malformed stream line %r: %s", payload[:80], e)
        return None


def iter_fragments(lines: Iterable[str]) -> Iterator[StreamFragment]:
    """Yield fragments from ``lines`` until ``data: [DONE]`` or the lines run out."""
    for line in lines:
        try:
            fragment = parse_line(line)
        except _Done:
            return
        if fragment is not None:
            yield fragment


async def aiter_fragments(lines: AsyncIterable[str]) -> AsyncIterator[StreamFragment]:
    """Async counterpart of ``iter_fragments`` for network streams."""
    async for line in lines:
        try:
            fragment = parse_line(line)
        except _Done:
            return
        if fragment is not None:
            yield fragment
