"""
Centralized configuration with environment variable overrides.

Business identity, default booking rules, gateway and notification settings
all live here. Nothing is hardcoded in scheduling or widget logic.
"""

import logging
import os
from dataclasses import dataclass, field

from dotenv import load_dotenv

from booking_widget.logging_context import build_log_handler

load_dotenv()

logger = logging.getLogger(__name__)


def _safe_int(env_var: str, default: str) -> int:
    """Parse an integer from an env var with a clear error on bad values."""
    raw = os.getenv(env_var, default)
    try:
        return int(raw)
    except (ValueError, TypeError):
        raise ValueError(
            f"Invalid integer for {env_var}: {raw!r}"
        ) from None


def _safe_float(env_var: str, default: str) -> float:
    """Parse a float from an env var with a clear error on bad values."""
    raw = os.getenv(env_var, default)
    try:
        return float(raw)
    except (ValueError, TypeError):
        raise ValueError(
            f"Invalid float for {env_var}: {raw!r}"
        ) from None


def _safe_int_list(env_var: str, default: str) -> tuple[int, ...]:
    """Parse a comma-separated list of integers, e.g. ``"1,2,3,4,5"``."""
    raw = os.getenv(env_var, default)
    try:
        return tuple(int(part) for part in raw.split(",") if part.strip())
    except (ValueError, TypeError, AttributeError):
        raise ValueError(
            f"Invalid integer list for {env_var}: {raw!r}"
        ) from None


@dataclass(frozen=True)
class BusinessConfig:
    """Identity of the business whose calendar the widget books into."""

    business_id: str = os.getenv("BUSINESS_ID", "default")
    name: str = os.getenv("BUSINESS_NAME", "CherryCap")
    timezone: str = os.getenv("BUSINESS_TIMEZONE", "America/Detroit")


@dataclass(frozen=True)
class SchedulingConfig:
    """Booking rules used when a business has not saved its own settings."""

    available_days: tuple[int, ...] = _safe_int_list("BOOKING_AVAILABLE_DAYS", "1,2,3,4,5")
    start_hour: int = _safe_int("BOOKING_START_HOUR", "9")
    end_hour: int = _safe_int("BOOKING_END_HOUR", "17")
    default_duration: int = _safe_int("BOOKING_DURATION_MINUTES", "30")
    buffer_time: int = _safe_int("BOOKING_BUFFER_MINUTES", "15")
    min_advance_hours: int = _safe_int("BOOKING_MIN_ADVANCE_HOURS", "24")
    max_advance_days: int = _safe_int("BOOKING_MAX_ADVANCE_DAYS", "30")
    days_offered: int = _safe_int("BOOKING_DAYS_OFFERED", "5")


@dataclass(frozen=True)
class TransportConfig:
    """Chat gateway endpoint and streaming limits."""

    gateway_url: str = os.getenv("CHAT_GATEWAY_URL", "http://localhost:3000/api/public-chat")
    timeout_seconds: float = _safe_float("CHAT_TIMEOUT_SECONDS", "30.0")
    api_key: str = os.getenv("CHAT_API_KEY", "")


@dataclass(frozen=True)
class NotificationConfig:
    """Booking confirmation email settings."""

    resend_api_key: str = os.getenv("RESEND_API_KEY", "")
    from_email: str = os.getenv("RESEND_FROM_EMAIL", "CherryCap <onboarding@resend.dev>")
    owner_email: str = os.getenv("NOTIFY_OWNER_EMAIL", "")


@dataclass(frozen=True)
class AppConfig:
    """Root configuration aggregating all sub-configs."""

    business: BusinessConfig = field(default_factory=BusinessConfig)
    scheduling: SchedulingConfig = field(default_factory=SchedulingConfig)
    transport: TransportConfig = field(default_factory=TransportConfig)
    notifications: NotificationConfig = field(default_factory=NotificationConfig)
    log_level: str = os.getenv("LOG_LEVEL", "INFO")
    greeting: str = os.getenv(
        "WIDGET_GREETING",
        "Hi there! I can answer questions or help you book a free consultation. "
        "What can I do for you?",
    )


def _validate_config(config: AppConfig) -> None:
    """Validate configuration values are within acceptable ranges."""
    sched = config.scheduling
    if not 0 <= sched.start_hour < sched.end_hour <= 24:
        raise ValueError(
            "BOOKING_START_HOUR must be before BOOKING_END_HOUR within 0-24, "
            f"got {sched.start_hour}-{sched.end_hour}"
        )
    if sched.default_duration <= 0:
        raise ValueError(
            f"BOOKING_DURATION_MINUTES must be > 0, got {sched.default_duration}"
        )
    if sched.buffer_time < 0:
        raise ValueError(
            f"BOOKING_BUFFER_MINUTES must be >= 0, got {sched.buffer_time}"
        )
    if sched.min_advance_hours < 0:
        raise ValueError(
            f"BOOKING_MIN_ADVANCE_HOURS must be >= 0, got {sched.min_advance_hours}"
        )
    if sched.max_advance_days < 0:
        raise ValueError(
            f"BOOKING_MAX_ADVANCE_DAYS must be >= 0, got {sched.max_advance_days}"
        )
    if sched.days_offered < 1:
        raise ValueError(
            f"BOOKING_DAYS_OFFERED must be >= 1, got {sched.days_offered}"
        )
    bad_days = [d for d in sched.available_days if not 0 <= d <= 6]
    if bad_days:
        raise ValueError(
            f"BOOKING_AVAILABLE_DAYS must be weekday numbers 0-6 (0=Sunday), got {bad_days}"
        )
    if config.transport.timeout_seconds <= 0:
        raise ValueError(
            f"CHAT_TIMEOUT_SECONDS must be > 0, got {config.transport.timeout_seconds}"
        )
    if not config.business.business_id.strip():
        raise ValueError("BUSINESS_ID must not be empty")


def load_config() -> AppConfig:
    """Load and validate application configuration."""
    config = AppConfig()
    _validate_config(config)
    logging.basicConfig(
        level=getattr(logging, config.log_level.upper(), logging.INFO),
        handlers=[build_log_handler()],
    )
    logger.info("Configuration loaded for '%s'", config.business.name)
    return config


# Singleton instance
settings = load_config()
