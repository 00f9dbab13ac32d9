"""Tests for booking confirmation emails."""

import json
from dataclasses import replace
from datetime import date, time

import httpx
import pytest

from booking_widget import notifications
from booking_widget.config import AppConfig, NotificationConfig
from booking_widget.errors import NotificationError
from booking_widget.notifications import (
    RESEND_API_URL,
    LoggingNotifier,
    ResendEmailNotifier,
    build_confirmation_email,
    build_notifier,
    build_owner_email,
)
from tests.conftest import make_appointment, make_settings


@pytest.fixture
def appointment():
    appt = make_appointment(date(2024, 6, 4), time(14, 0), time(14, 30))
    return appt.model_copy(update={"service": "Free Consultation", "customer_phone": "5551234567"})


class TestEmailContent:
    def test_confirmation_email(self, appointment):
        email = build_confirmation_email(appointment, make_settings())
        assert email.to == "jane@example.com"
        assert email.subject == "Your Appointment is Confirmed"
        assert "Hi Jane Doe," in email.text
        assert "Date: Tuesday, June 4, 2024" in email.text
        assert "Time: 2:00 PM (America/Detroit)" in email.text
        assert "Duration: 30 minutes" in email.text
        assert "Service: Free Consultation" in email.text
        assert email.text.endswith("Test Studio")

    def test_owner_email(self, appointment):
        email = build_owner_email(appointment, make_settings(), "owner@example.com")
        assert email.to == "owner@example.com"
        assert email.subject == "New booking: Jane Doe on 2024-06-04"
        assert "jane@example.com, 5551234567" in email.text


class TestLoggingNotifier:
    def test_records_sent_email(self, appointment):
        notifier = LoggingNotifier()
        notifier.notify_booked(appointment, make_settings())
        assert [e.to for e in notifier.sent] == ["jane@example.com"]


class TestResendEmailNotifier:
    def _notifier(self, handler, **kwargs) -> ResendEmailNotifier:
        client = httpx.Client(transport=httpx.MockTransport(handler))
        return ResendEmailNotifier("re_test", from_email="Studio <hi@example.com>", client=client, **kwargs)

    def test_posts_to_resend(self, appointment):
        requests = []

        def handler(request):
            requests.append(request)
            return httpx.Response(200, json={"id": "email-1"})

        self._notifier(handler).notify_booked(appointment, make_settings(notify_email=False))

        assert len(requests) == 1
        assert str(requests[0].url) == RESEND_API_URL
        assert requests[0].headers["authorization"] == "Bearer re_test"
        body = json.loads(requests[0].content)
        assert body["from"] == "Studio <hi@example.com>"
        assert body["to"] == "jane@example.com"
        assert body["subject"] == "Your Appointment is Confirmed"

    def test_owner_copy_when_enabled(self, appointment):
        recipients = []

        def handler(request):
            recipients.append(json.loads(request.content)["to"])
            return httpx.Response(200, json={"id": "email-1"})

        notifier = self._notifier(handler, owner_email="owner@example.com")
        notifier.notify_booked(appointment, make_settings(notify_email=True))
        assert recipients == ["jane@example.com", "owner@example.com"]

    def test_http_error_raises_notification_error(self, appointment):
        def handler(request):
            return httpx.Response(500, json={"message": "internal"})

        with pytest.raises(NotificationError, match="jane@example.com"):
            self._notifier(handler).notify_booked(appointment, make_settings())


class TestBuildNotifier:
    def _use_key(self, monkeypatch, key: str) -> None:
        config = replace(AppConfig(), notifications=NotificationConfig(resend_api_key=key))
        monkeypatch.setattr(notifications, "settings", config)

    def test_logging_notifier_without_api_key(self, monkeypatch):
        self._use_key(monkeypatch, "")
        assert isinstance(build_notifier(), LoggingNotifier)

    def test_resend_notifier_with_api_key(self, monkeypatch):
        self._use_key(monkeypatch, "re_live")
        assert isinstance(build_notifier(), ResendEmailNotifier)
