"""
Booking notifications.

Sending email is fire-and-forget from the booking flow's point of view:
the scheduling service calls ``notify_booked`` after the appointment is
committed and only logs a failure. In production the Resend HTTP API
delivers the confirmation; ``LoggingNotifier`` is the keyless default.
"""

import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Optional, Protocol

import httpx

from booking_widget.config import settings
from booking_widget.errors import NotificationError
from booking_widget.schemas.scheduling_schema import Appointment, AppointmentSettings
from booking_widget.utils import format_time_display

logger = logging.getLogger(__name__)

RESEND_API_URL = "https://api.resend.com/emails"


@dataclass(frozen=True)
class ConfirmationEmail:
    to: str
    subject: str
    text: str


class Notifier(Protocol):
    def notify_booked(self, appointment: Appointment, config: AppointmentSettings) -> None:
        ...


def build_confirmation_email(
    appointment: Appointment, config: AppointmentSettings
) -> ConfirmationEmail:
    """Render the customer-facing confirmation for a new appointment."""
    when = datetime.combine(appointment.date, appointment.start_time)
    lines = [
        "Appointment Confirmed",
        "Your appointment has been booked successfully.",
        "",
        f"Hi {appointment.customer_name},",
        "",
        f"Date: {when.strftime('%A, %B')} {when.day}, {when.year}",
        f"Time: {format_time_display(appointment.start_time)} ({config.timezone})",
        f"Duration: {appointment.duration} minutes",
    ]
    if appointment.service:
        lines.append(f"Service: {appointment.service}")
    lines += [
        "",
        "Need to reschedule? Just reply to this email.",
        "",
        config.business_name or settings.business.name,
    ]
    return ConfirmationEmail(
        to=appointment.customer_email,
        subject="Your Appointment is Confirmed",
        text="\n".join(lines),
    )


def build_owner_email(
    appointment: Appointment, config: AppointmentSettings, owner_email: str
) -> ConfirmationEmail:
    """Render the heads-up sent to the business owner."""
    contact = appointment.customer_email
    if appointment.customer_phone:
        contact += f", {appointment.customer_phone}"
    return ConfirmationEmail(
        to=owner_email,
        subject=f"New booking: {appointment.customer_name} on {appointment.date.isoformat()}",
        text=(
            f"{appointment.customer_name} ({contact}) booked "
            f"{appointment.date.isoformat()} at {format_time_display(appointment.start_time)} "
            f"for {appointment.duration} minutes via the website chat."
        ),
    )


class LoggingNotifier:
    """Records notifications in the log instead of sending them."""

    def __init__(self) -> None:
        self.sent: list[ConfirmationEmail] = []

    def notify_booked(self, appointment: Appointment, config: AppointmentSettings) -> None:
        email = build_confirmation_email(appointment, config)
        self.sent.append(email)
        logger.info("Confirmation for %s queued to %s", appointment.id, email.to)


class ResendEmailNotifier:
    """Delivers confirmation emails through the Resend HTTP API."""

    def __init__(
        self,
        api_key: str,
        from_email: str = settings.notifications.from_email,
        owner_email: Optional[str] = None,
        client: Optional[httpx.Client] = None,
    ) -> None:
        self._from_email = from_email
        self._owner_email = owner_email or settings.notifications.owner_email or None
        self._client = client or httpx.Client(timeout=10.0)
        self._headers = {
            "Authorization": f"Bearer {api_key}",
            "Content-Type": "application/json",
        }

    def _send(self, email: ConfirmationEmail) -> None:
        try:
            response = self._client.post(
                RESEND_API_URL,
                headers=self._headers,
                json={
                    "from": self._from_email,
                    "to": email.to,
                    "subject": email.subject,
                    "text": email.text,
                },
            )
            response.raise_for_status()
        except httpx.HTTPError as e:
            raise NotificationError(f"Failed to send email to {email.to}: {e}") from e

    def notify_booked(self, appointment: Appointment, config: AppointmentSettings) -> None:
        self._send(build_confirmation_email(appointment, config))
        logger.info("Confirmation email sent to %s", appointment.customer_email)
        if config.notify_email and self._owner_email:
            self._send(build_owner_email(appointment, config, self._owner_email))


def build_notifier() -> Notifier:
    """Pick the notifier the environment supports."""
    if settings.notifications.resend_api_key:
        return ResendEmailNotifier(settings.notifications.resend_api_key)
    return LoggingNotifier()
