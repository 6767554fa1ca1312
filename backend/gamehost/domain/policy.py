from __future__ import annotations

from dataclasses import dataclass

from ..models import VenueBookingSettings

DEFAULT_TIMEZONE = "America/Los_Angeles"


@dataclass(frozen=True)
class VenuePolicy:
    """Resolved, read-only booking policy for one venue."""

    venue_id: int
    bookings_enabled: bool = True
    require_phone: bool = False
    require_email: bool = False
    min_booking_notice_hours: int = 1
    max_advance_booking_days: int = 30
    default_duration_minutes: int = 120
    no_show_grace_minutes: int = 15
    timezone: str = DEFAULT_TIMEZONE

    @classmethod
    def from_settings(cls, settings: VenueBookingSettings) -> "VenuePolicy":
        return cls(
            venue_id=settings.venue_id,
            bookings_enabled=settings.bookings_enabled,
            require_phone=settings.require_phone,
            require_email=settings.require_email,
            min_booking_notice_hours=settings.min_booking_notice_hours,
            max_advance_booking_days=settings.max_advance_booking_days,
            default_duration_minutes=settings.default_duration_minutes,
            no_show_grace_minutes=settings.no_show_grace_minutes,
            timezone=settings.timezone or DEFAULT_TIMEZONE,
        )
