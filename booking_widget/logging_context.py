"""Correlation ID logging context for tracing one chat across modules.

Provides a conversation-aware logger that attaches the conversation ID to
every log record, so a single visitor's booking flow can be followed from
the widget through the transport down to the appointment store.

Usage:
    from booking_widget.logging_context import get_conversation_logger, set_conversation_id

    set_conversation_id("CHAT-abc123")
    logger = get_conversation_logger(__name__)
    logger.info("Slot selected")  # record.conversation_id == "CHAT-abc123"
"""

import logging
from contextvars import ContextVar

_conversation_id: ContextVar[str] = ContextVar("conversation_id", default="NO_CONVERSATION")


def set_conversation_id(conversation_id: str) -> None:
    """Set the correlation ID for the current async context."""
    _conversation_id.set(conversation_id)


def get_conversation_id() -> str:
    """Retrieve the current correlation ID."""
    return _conversation_id.get()


class ConversationIdFilter(logging.Filter):
    """Injects conversation_id into every log record."""

    def filter(self, record: logging.LogRecord) -> bool:
        record.conversation_id = _conversation_id.get()  # type: ignore[attr-defined]
        return True


def get_conversation_logger(name: str) -> logging.Logger:
    """Return a logger with the ConversationIdFilter attached.

    The filter adds ``conversation_id`` to each record so formatters can
    include ``%(conversation_id)s`` in their format string.
    """
    logger = logging.getLogger(name)
    if not any(isinstance(f, ConversationIdFilter) for f in logger.filters):
        logger.addFilter(ConversationIdFilter())
    return logger


LOG_FORMAT = "%(asctime)s [%(name)s] [%(conversation_id)s] %(levelname)s: %(message)s"
LOG_DATE_FORMAT = "%Y-%m-%d %H:%M:%S"


def build_log_handler() -> logging.Handler:
    """Console handler whose lines include the current conversation ID.

    The filter sits on the handler so records from third-party loggers
    (httpx, asyncio) are tagged too.
    """
    handler = logging.StreamHandler()
    handler.addFilter(ConversationIdFilter())
    handler.setFormatter(logging.Formatter(LOG_FORMAT, datefmt=LOG_DATE_FORMAT))
    return handler
