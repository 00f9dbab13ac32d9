from booking_widget.transport.client import ChatTransport
from booking_widget.transport.encoder import encode_fragment, encode_reply
from booking_widget.transport.sse import aiter_fragments, iter_fragments

__all__ = [
    "ChatTransport",
    "iter_fragments", "aiter_fragments",
    "encode_fragment", "encode_reply",
]
