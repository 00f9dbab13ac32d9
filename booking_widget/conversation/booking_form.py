"""
Inline booking form: field definitions and validation.

Each field has a validator and the message shown under the input when it
fails. Validation collects every failing field at once so the form can
highlight them together.

Usage:
    customer = validate_booking_form("Jane Doe", "jane@example.com", phone="(555) 123-4567")
"""

import logging
import re
from dataclasses import dataclass
from typing import Callable, Optional

from booking_widget.errors import BookingValidationError
from booking_widget.schemas.scheduling_schema import Customer
from booking_widget.utils import normalize_phone

logger = logging.getLogger(__name__)

# Validation thresholds
MIN_NAME_LENGTH = 2
MIN_PHONE_DIGITS = 7
MAX_PHONE_DIGITS = 15

EMAIL_PATTERN = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")


@dataclass(frozen=True)
class FormFields:
    """Values typed into the inline booking form."""
    name: str = ""
    email: str = ""
    phone: str = ""


def _validate_name(value: str) -> bool:
    return len(value.strip()) >= MIN_NAME_LENGTH


def _validate_email(value: str) -> bool:
    return bool(EMAIL_PATTERN.match(value.strip()))


def _validate_phone(value: str) -> bool:
    # Optional field: empty is fine.
    if not value.strip():
        return True
    digits = re.sub(r"[^\d]", "", value)
    return MIN_PHONE_DIGITS <= len(digits) <= MAX_PHONE_DIGITS


@dataclass(frozen=True)
class FieldDefinition:
    name: str
    label: str
    required: bool
    validator: Callable[[str], bool]
    error_message: str


FORM_FIELDS: list[FieldDefinition] = [
    FieldDefinition(
        name="name",
        label="Your name",
        required=True,
        validator=_validate_name,
        error_message="Please enter your name.",
    ),
    FieldDefinition(
        name="email",
        label="Email address",
        required=True,
        validator=_validate_email,
        error_message="Please enter a valid email address.",
    ),
    FieldDefinition(
        name="phone",
        label="Phone (optional)",
        required=False,
        validator=_validate_phone,
        error_message="Please enter a valid phone number.",
    ),
]


def field_errors(fields: FormFields) -> dict[str, str]:
    """Map of field name to error message for every invalid field."""
    errors: dict[str, str] = {}
    for defn in FORM_FIELDS:
        value = getattr(fields, defn.name)
        if not defn.validator(value):
            errors[defn.name] = defn.error_message
    return errors


def validate_booking_form(name: str, email: str, phone: Optional[str] = None) -> Customer:
    """Turn submitted form values into a ``Customer``.

    Raises:
        BookingValidationError: one or more fields are invalid.
    """
    fields = FormFields(name=name or "", email=email or "", phone=phone or "")
    errors = field_errors(fields)
    if errors:
        logger.debug("Booking form rejected: %s", sorted(errors))
        raise BookingValidationError(errors)

    return Customer(
        name=fields.name.strip(),
        email=fields.email.strip().lower(),
        phone=normalize_phone(fields.phone) if fields.phone.strip() else None,
    )
