"""Booking notice-period checks."""

from datetime import date, datetime, time, timedelta
from typing import Optional
from zoneinfo import ZoneInfo

from detailing.config import get_settings

settings = get_settings()


def local_now() -> datetime:
    """Naive wall-clock time at the business; slot dates/times are stored the same way."""
    return datetime.now(ZoneInfo(settings.BUSINESS_TIMEZONE)).replace(tzinfo=None)


def is_slot_in_past(
    slot_date: date,
    start_time: time,
    buffer_minutes: Optional[int] = None,
    now: Optional[datetime] = None,
) -> bool:
    """True when the slot starts before now + buffer."""
    if buffer_minutes is None:
        buffer_minutes = settings.BOOKING_BUFFER_MINUTES
    now = now or local_now()
    return datetime.combine(slot_date, start_time) < now + timedelta(minutes=buffer_minutes)


def hours_until(slot_date: date, start_time: time, now: Optional[datetime] = None) -> float:
    now = now or local_now()
    return (datetime.combine(slot_date, start_time) - now).total_seconds() / 3600


def format_time(value: time) -> str:
    """'09:00'."""
    return value.strftime("%H:%M")
