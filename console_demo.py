"""
Offline console demo: a full booking conversation without any API keys.

The chat widget talks to an in-process gateway through
``httpx.MockTransport``. The gateway stands in for the language model with
simple keyword routing, but calls the real appointment tools and streams
its replies in the real SSE format, so availability, booking, conflicts and
the session state machine all behave as they do in production.

Usage:
    python console_demo.py
    python console_demo.py --scenario booking
    python console_demo.py --scenario conflict
"""

import argparse
import asyncio
import json
import re
import sys
from datetime import date, datetime
from typing import Optional

import httpx

from booking_widget.config import settings
from booking_widget.conversation.state_machine import BookingStateMachine
from booking_widget.notifications import build_notifier
from booking_widget.scheduling.service import SchedulingService
from booking_widget.scheduling.store import InMemoryAppointmentStore
from booking_widget.schemas.conversation_schema import ChatMessage, Role
from booking_widget.schemas.scheduling_schema import Customer
from booking_widget.tools.appointment_tools import execute_appointment_tool
from booking_widget.transport.client import ChatTransport
from booking_widget.transport.encoder import STREAM_HEADERS, encode_reply
from booking_widget.widget.chat_widget import ChatWidget, Pill

BLUE = "\033[94m"
GREEN = "\033[92m"
YELLOW = "\033[93m"
RED = "\033[91m"
DIM = "\033[2m"
RESET = "\033[0m"
BOLD = "\033[1m"

BOOKING_SIGNALS = ("book", "appointment", "schedule", "consult", "available", "meet")
TIMES_FOR_DATE = re.compile(r"available times for (\d{4}-\d{2}-\d{2})")


class DemoGateway:
    """Keyword-routed stand-in for the chat gateway's language model."""

    def __init__(self, service: SchedulingService) -> None:
        self.service = service
        self.requests = 0

    def handle(self, request: httpx.Request) -> httpx.Response:
        self.requests += 1
        body = json.loads(request.content)
        last = body["messages"][-1]["content"] if body["messages"] else ""
        content, ui_component = self._reply_to(last)
        stream = "".join(encode_reply(content, ui_component))
        return httpx.Response(200, headers=STREAM_HEADERS, content=stream.encode())

    def _reply_to(self, text: str):
        wanted = TIMES_FOR_DATE.search(text)
        if wanted:
            result = execute_appointment_tool(
                self.service, "get_available_slots", {"date": wanted.group(1)}
            )
            return result.get("message", result.get("error", "")), result.get("ui_component")

        if any(signal in text.lower() for signal in BOOKING_SIGNALS):
            result = execute_appointment_tool(self.service, "get_available_days", {})
            content = "Let me show you our available days! " + result.get("message", "")
            return content, result.get("ui_component")

        return (
            f"I'm the {settings.business.name} assistant. I can answer questions or "
            "book you a free consultation. Just ask to book an appointment.",
            None,
        )


class ConsoleSession:
    """Drives a ``ChatWidget`` from the terminal."""

    # Pre-scripted scenarios for --scenario flag
    SCENARIOS: dict[str, list[str]] = {
        "booking": [
            "Hi, I'd like to book a consultation",
            "#1",
            "#1",
            "form:Jane Doe|jane@example.com|(555) 123-4567",
        ],
        "conflict": [
            "Can I schedule an appointment?",
            "#1",
            "#1",
            "steal",
            "form:Jane Doe|jane@example.com|",
            "#1",
            "form:Jane Doe|jane@example.com|",
        ],
    }

    def __init__(self, transport: Optional[ChatTransport] = None) -> None:
        self.store = InMemoryAppointmentStore()
        self.service = SchedulingService(self.store, notifier=build_notifier())
        if transport is None:
            self.gateway = DemoGateway(self.service)
            client = httpx.AsyncClient(transport=httpx.MockTransport(self.gateway.handle))
            transport = ChatTransport(base_url="http://demo.local/api/public-chat", client=client)
        self.widget = ChatWidget(transport, self.service)
        self._shown = 0

    # ------------------------------------------------------------------ #
    # Rendering
    # ------------------------------------------------------------------ #

    def system_log(self, text: str) -> None:
        print(f"{DIM}  >> {text}{RESET}")

    def _render_new_messages(self) -> None:
        for message in self.widget.messages[self._shown:]:
            if message.role == Role.USER:
                print(f"\n{BLUE}[Visitor] {RESET}{message.content}")
            else:
                print(f"{GREEN}{BOLD}[Assistant]{RESET} {GREEN}{message.content}{RESET}")
                self._render_pills(message)
        self._shown = len(self.widget.messages)
        self.system_log(f"State: {self.widget.state.value}")
        if self.widget.form_visible:
            self._render_form()

    def _render_pills(self, message: ChatMessage) -> None:
        for i, pill in enumerate(self.widget.pills_for(message), start=1):
            colour = YELLOW if pill.enabled else DIM
            print(f"    {colour}[#{i}] {pill.label}{RESET}")

    def _render_form(self) -> None:
        session = self.widget.session
        print(f"{YELLOW}  Book for {session.selected_display} on {session.selected_date}{RESET}")
        print(f"{DIM}  Enter: form:name|email|phone   or   cancel{RESET}")
        for field, error in session.form_errors.items():
            print(f"{RED}  {field}: {error}{RESET}")

    def _latest_pills(self) -> list[Pill]:
        for message in reversed(self.widget.messages):
            pills = self.widget.pills_for(message)
            if pills:
                return pills
        return []

    # ------------------------------------------------------------------ #
    # Input handling
    # ------------------------------------------------------------------ #

    async def _process_input(self, text: str) -> None:
        if text.startswith("#"):
            await self._click(text[1:])
        elif text.startswith("form:"):
            name, email, phone = (text[len("form:"):].split("|") + ["", "", ""])[:3]
            self.widget.submit_form(name, email, phone or None)
        elif text == "cancel":
            self.widget.cancel_form()
        elif text == "steal":
            self._book_as_someone_else()
        else:
            await self.widget.send_message(text)
        self._render_new_messages()

    async def _click(self, index: str) -> None:
        pills = self._latest_pills()
        try:
            pill = pills[int(index) - 1]
        except (ValueError, IndexError):
            print(f"{RED}No pill #{index}{RESET}")
            return
        if pill.kind == "day":
            await self.widget.select_day(pill.date, pill.label)
        else:
            self.widget.select_slot(pill.date, pill.time, pill.label)

    def _book_as_someone_else(self) -> None:
        """Simulate another visitor booking the selected slot first."""
        session = self.widget.session
        if not session.form_visible:
            print(f"{RED}Pick a time first.{RESET}")
            return
        appointment = self.service.book(
            date.fromisoformat(session.selected_date),
            datetime.strptime(session.selected_time, "%H:%M").time(),
            Customer(name="Other Visitor", email="other@example.com"),
        )
        self.system_log(f"Another visitor just booked {session.selected_time} ({appointment.id})")

    # ------------------------------------------------------------------ #
    # Entry points
    # ------------------------------------------------------------------ #

    def _banner(self, title: str) -> None:
        print()
        print(f"{BOLD}{'=' * 60}{RESET}")
        print(f"{BOLD}  BOOKING WIDGET - {title}{RESET}")
        print(f"{BOLD}  Business: {settings.business.name} ({settings.business.timezone}){RESET}")
        print(f"{BOLD}{'=' * 60}{RESET}")

    def _summary(self, title: str) -> None:
        print(f"\n{BOLD}{'=' * 60}{RESET}")
        print(f"{BOLD}  {title}{RESET}")
        print(f"{DIM}  State trace: {' -> '.join(BookingStateMachine.get_state_trace(self.widget.session))}{RESET}")
        for appt in self.service.upcoming(days=settings.scheduling.max_advance_days):
            print(f"{DIM}  {appt.id}: {appt.date} {appt.start_time:%H:%M} {appt.customer_name}{RESET}")
        print(f"{BOLD}{'=' * 60}{RESET}")

    async def run_scenario(self, scenario: str) -> None:
        """Auto-play a pre-scripted scenario for demo purposes."""
        steps = self.SCENARIOS.get(scenario)
        if not steps:
            print(f"{RED}Unknown scenario: {scenario}{RESET}")
            return

        self._banner(f"Scenario: {scenario}")
        self.widget.open()
        self._render_new_messages()
        for step in steps:
            print(f"{DIM}  $ {step}{RESET}")
            await self._process_input(step)
        self._summary(f"Scenario '{scenario}' complete.")
        await self.widget.transport.aclose()

    async def run(self) -> None:
        self._banner("Console Demo")
        print(f"{BOLD}  Type a message, #n to click a pill, 'quit' to exit{RESET}")
        self.widget.open()
        self._render_new_messages()

        while True:
            text = (await asyncio.to_thread(input, f"\n{BLUE}> {RESET}")).strip()
            if not text:
                continue
            if text.lower() in ("quit", "exit", "q"):
                self.widget.close()
                print(f"\n{DIM}Session ended.{RESET}")
                break
            await self._process_input(text)

        self._summary("Conversation complete.")
        await self.widget.transport.aclose()


def main(argv: Optional[list[str]] = None) -> int:
    parser = argparse.ArgumentParser(description="Offline booking widget demo")
    parser.add_argument(
        "--scenario",
        choices=sorted(ConsoleSession.SCENARIOS),
        help="Auto-play a pre-scripted conversation",
    )
    args = parser.parse_args(argv)

    session = ConsoleSession()
    if args.scenario:
        asyncio.run(session.run_scenario(args.scenario))
    else:
        asyncio.run(session.run())
    return 0


if __name__ == "__main__":
    sys.exit(main())
