"""
Booking widget entry point.

Runs the chat widget in the terminal, either against the configured chat
gateway or fully offline with the in-process demo gateway.

Usage:
    Live gateway: python main.py
    Console mode: python main.py console
"""

import asyncio
import logging
import sys

from booking_widget.config import settings

logger = logging.getLogger(__name__)


def _run_gateway_mode() -> None:
    """Chat against the gateway at CHAT_GATEWAY_URL."""
    from console_demo import ConsoleSession
    from booking_widget.transport.client import ChatTransport

    logger.info("Connecting to chat gateway at %s", settings.transport.gateway_url)
    session = ConsoleSession(transport=ChatTransport())
    asyncio.run(session.run())


def _run_console_mode() -> None:
    """Start the offline console demo (no API keys required)."""
    from console_demo import ConsoleSession

    session = ConsoleSession()
    asyncio.run(session.run())


if __name__ == "__main__":
    if len(sys.argv) > 1 and sys.argv[1] == "console":
        _run_console_mode()
    else:
        _run_gateway_mode()
