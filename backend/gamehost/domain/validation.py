from __future__ import annotations

import re
from dataclasses import dataclass, field
from datetime import datetime
from typing import Optional

from ..models import BookingSource
from ..utils.time import days_between, is_valid_time, normalize_time, parse_date, time_to_minutes
from .policy import VenuePolicy

_EMAIL_RE = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")
_PHONE_STRIP_RE = re.compile(r"[\s\-().+]")
_PHONE_DIGITS_RE = re.compile(r"^\d{7,15}$")


@dataclass(frozen=True)
class BookingRequest:
    venue_id: Optional[int]
    table_id: Optional[int]
    booking_date: Optional[str]
    start_time: Optional[str]
    party_size: Optional[int]
    guest_name: Optional[str]
    duration_minutes: Optional[int] = None
    end_time: Optional[str] = None
    guest_email: Optional[str] = None
    guest_phone: Optional[str] = None
    notes: Optional[str] = None
    internal_notes: Optional[str] = None
    game_id: Optional[int] = None
    source: BookingSource = BookingSource.ONLINE


@dataclass(frozen=True)
class ValidationResult:
    valid: bool
    errors: list[str] = field(default_factory=list)


def is_valid_email(email: str) -> bool:
    return _EMAIL_RE.match(email) is not None


def is_valid_phone(phone: str) -> bool:
    return _PHONE_DIGITS_RE.match(_PHONE_STRIP_RE.sub("", phone)) is not None


def _blank(value: Optional[str]) -> bool:
    return value is None or not value.strip()


def _is_positive_int(value: object) -> bool:
    return isinstance(value, int) and not isinstance(value, bool) and value > 0


def validate_booking_request(
    request: BookingRequest,
    policy: VenuePolicy,
    *,
    now: datetime,
) -> ValidationResult:
    """
    Check a booking request against venue policy. Pure: no I/O, no mutation.

    `now` is the venue-local wall clock. Errors are returned in rule order so
    callers that surface a single message report the first failing rule.
    """
    errors: list[str] = []
    today = now.date()

    # Required fields
    if request.venue_id is None:
        errors.append("Venue ID is required")
    if request.table_id is None:
        errors.append("Table selection is required")
    if _blank(request.guest_name):
        errors.append("Guest name is required")
    if _blank(request.booking_date):
        errors.append("Booking date is required")
    if _blank(request.start_time):
        errors.append("Start time is required")
    if not request.duration_minutes and _blank(request.end_time):
        errors.append("Duration or end time is required")

    # Party size
    if request.party_size is None:
        errors.append("Party size is required")
    elif not _is_positive_int(request.party_size):
        errors.append("Party size must be a positive whole number")

    if request.duration_minutes is not None and not _is_positive_int(request.duration_minutes):
        errors.append("Duration must be a positive whole number of minutes")

    # Contact details
    has_email = not _blank(request.guest_email)
    has_phone = not _blank(request.guest_phone)
    if not has_email and not has_phone:
        errors.append("At least one contact method (email or phone) is required")
    if has_email and not is_valid_email(request.guest_email.strip()):
        errors.append("Invalid email address format")
    if has_phone and not is_valid_phone(request.guest_phone.strip()):
        errors.append("Invalid phone number format")
    if policy.require_phone and not has_phone:
        errors.append("A phone number is required for this venue")
    if policy.require_email and not has_email:
        errors.append("An email address is required for this venue")

    # Date
    booking_day = parse_date(request.booking_date) if not _blank(request.booking_date) else None
    if not _blank(request.booking_date):
        if booking_day is None:
            errors.append("Invalid date format. Use YYYY-MM-DD")
        else:
            if booking_day < today:
                errors.append("Booking date cannot be in the past")
            if days_between(today, booking_day) > policy.max_advance_booking_days:
                errors.append(
                    f"Bookings can only be made up to {policy.max_advance_booking_days} days in advance"
                )

    # Time formats
    start_ok = not _blank(request.start_time) and is_valid_time(request.start_time)
    end_ok = not _blank(request.end_time) and is_valid_time(request.end_time)
    if not _blank(request.start_time) and not start_ok:
        errors.append("Invalid start time format. Use HH:MM")
    if not _blank(request.end_time) and not end_ok:
        errors.append("Invalid end time format. Use HH:MM")

    # Notice window, same-day bookings only
    if booking_day is not None and booking_day == today and start_ok:
        current_minutes = now.hour * 60 + now.minute
        minutes_until = time_to_minutes(normalize_time(request.start_time)) - current_minutes
        if minutes_until < 0:
            errors.append("Start time cannot be in the past")
        elif minutes_until < policy.min_booking_notice_hours * 60:
            errors.append(f"Bookings require at least {policy.min_booking_notice_hours} hour(s) notice")

    if start_ok and end_ok:
        start_minutes = time_to_minutes(normalize_time(request.start_time))
        end_minutes = time_to_minutes(normalize_time(request.end_time))
        if end_minutes <= start_minutes:
            errors.append("End time must be after start time")

    return ValidationResult(valid=not errors, errors=errors)
