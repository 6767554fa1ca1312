from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, datetime
from typing import Optional

from ..domain.errors import BookingValidationError, NotFoundError
from ..domain.policy import VenuePolicy
from ..domain.repositories import BookingRepository, GameRepository, TableRepository, VenueRepository
from ..models import INACTIVE_BOOKING_STATUSES, Booking, VenueTable
from ..utils.time import (
    add_minutes_to_time,
    format_time,
    intervals_overlap,
    is_valid_time,
    minutes_to_time,
    normalize_time,
    time_to_minutes,
    venue_now,
)
from .timeline import get_operating_hours


@dataclass(frozen=True)
class BookingConflict:
    booking_id: int
    guest_name: str
    start_time: str
    end_time: str


@dataclass(frozen=True)
class TableAvailability:
    available: bool
    conflicts: list[BookingConflict] = field(default_factory=list)


@dataclass(frozen=True)
class GameAvailability:
    available: bool
    copies_total: int
    copies_reserved: int

    @property
    def copies_available(self) -> int:
        return max(self.copies_total - self.copies_reserved, 0)


@dataclass(frozen=True)
class TableFit:
    table: VenueTable
    exact_fit: bool
    tight_fit: bool


def booking_minutes(booking: Booking) -> tuple[int, int]:
    return (
        time_to_minutes(format_time(booking.start_time)),
        time_to_minutes(format_time(booking.end_time)),
    )


def overlapping_bookings(
    bookings: list[Booking],
    start_time: str,
    end_time: str,
    *,
    exclude_booking_id: Optional[int] = None,
) -> list[Booking]:
    start = time_to_minutes(normalize_time(start_time))
    end = time_to_minutes(normalize_time(end_time))
    found: list[Booking] = []
    for booking in bookings:
        if exclude_booking_id is not None and booking.id == exclude_booking_id:
            continue
        other_start, other_end = booking_minutes(booking)
        if intervals_overlap(start, end, other_start, other_end):
            found.append(booking)
    return found


async def check_table_availability(
    booking_repo: BookingRepository,
    *,
    table_id: int,
    booking_date: date,
    start_time: str,
    end_time: str,
    exclude_booking_id: Optional[int] = None,
) -> TableAvailability:
    """Every active booking on the table overlapping [start_time, end_time) is a conflict."""
    bookings = await booking_repo.list_for_table_and_date(table_id, booking_date, INACTIVE_BOOKING_STATUSES)
    conflicts = [
        BookingConflict(
            booking_id=booking.id,
            guest_name=booking.guest_name,
            start_time=format_time(booking.start_time),
            end_time=format_time(booking.end_time),
        )
        for booking in overlapping_bookings(
            bookings, start_time, end_time, exclude_booking_id=exclude_booking_id
        )
    ]
    return TableAvailability(available=not conflicts, conflicts=conflicts)


async def check_game_availability(
    game_repo: GameRepository,
    booking_repo: BookingRepository,
    *,
    game_id: int,
    booking_date: date,
    start_time: str,
    end_time: str,
    exclude_booking_id: Optional[int] = None,
) -> GameAvailability:
    game = await game_repo.get(game_id)
    if game is None:
        raise NotFoundError("The selected game was not found.")
    copies_total = game.copies_in_rotation if game.copies_in_rotation is not None else 1

    bookings = await booking_repo.list_for_game_and_date(game_id, booking_date, INACTIVE_BOOKING_STATUSES)
    reserved = len(
        overlapping_bookings(bookings, start_time, end_time, exclude_booking_id=exclude_booking_id)
    )
    return GameAvailability(
        available=reserved < copies_total,
        copies_total=copies_total,
        copies_reserved=reserved,
    )


def _fit_key(fit: TableFit, party_size: int) -> tuple[int, int, str]:
    capacity = fit.table.capacity
    if fit.exact_fit:
        rank = 0
    elif fit.tight_fit:
        rank = 1
    elif capacity is not None:
        rank = 2
    else:
        rank = 3
    return rank, capacity if capacity is not None else party_size, fit.table.label


async def list_available_tables(
    table_repo: TableRepository,
    booking_repo: BookingRepository,
    *,
    venue_id: int,
    booking_date: date,
    start_time: str,
    end_time: str,
    party_size: int,
) -> list[TableFit]:
    """Free tables that seat the party, best fit first."""
    fits: list[TableFit] = []
    for table in await table_repo.list_for_venue(venue_id):
        if table.capacity is not None and table.capacity < party_size:
            continue
        availability = await check_table_availability(
            booking_repo,
            table_id=table.id,
            booking_date=booking_date,
            start_time=start_time,
            end_time=end_time,
        )
        if not availability.available:
            continue
        fits.append(
            TableFit(
                table=table,
                exact_fit=table.capacity == party_size,
                tight_fit=table.capacity == party_size + 1,
            )
        )
    return sorted(fits, key=lambda fit: _fit_key(fit, party_size))


def resolve_interval(
    start_time: str,
    *,
    end_time: Optional[str] = None,
    duration_minutes: Optional[int] = None,
    default_duration: int = 120,
) -> tuple[str, str]:
    """Normalized (start, end) for an availability query; raises BookingValidationError."""
    if not is_valid_time(start_time):
        raise BookingValidationError("Invalid start time format. Use HH:MM")
    start = normalize_time(start_time)
    if end_time is not None:
        if not is_valid_time(end_time):
            raise BookingValidationError("Invalid end time format. Use HH:MM")
        end = normalize_time(end_time)
    else:
        minutes = duration_minutes if duration_minutes is not None else default_duration
        if minutes <= 0:
            raise BookingValidationError("Duration must be a positive whole number of minutes")
        try:
            end = add_minutes_to_time(start, minutes)
        except ValueError as exc:
            raise BookingValidationError("Bookings must end on the same day they start") from exc
    if time_to_minutes(end) <= time_to_minutes(start):
        raise BookingValidationError("End time must be after start time")
    return start, end


@dataclass(frozen=True)
class TimeSlot:
    start_time: str
    end_time: str
    tables: list[TableFit]

    @property
    def is_available(self) -> bool:
        return bool(self.tables)


async def list_available_slots(
    venue_repo: VenueRepository,
    table_repo: TableRepository,
    booking_repo: BookingRepository,
    *,
    policy: VenuePolicy,
    booking_date: date,
    party_size: int,
    duration_minutes: Optional[int] = None,
    interval_minutes: int = 30,
    now: Optional[datetime] = None,
) -> list[TimeSlot]:
    """
    Start times every `interval_minutes` through the venue's hours on
    `booking_date`, each with the tables free for the whole slot.

    Slots running past closing are left out. On the venue's current day so
    are slots starting before now plus the minimum notice; earlier days have
    no slots. `now` is the naive venue-local wall clock.
    """
    duration = duration_minutes if duration_minutes is not None else policy.default_duration_minutes
    if duration <= 0:
        raise BookingValidationError("Duration must be a positive whole number of minutes")
    if interval_minutes <= 0:
        raise BookingValidationError("Slot interval must be a positive whole number of minutes")
    if party_size < 1:
        raise BookingValidationError("Party size must be at least 1")
    if now is None:
        now = venue_now(policy.timezone).replace(tzinfo=None)

    today = now.date()
    if booking_date < today:
        return []

    hours = await get_operating_hours(venue_repo, policy.venue_id, booking_date)
    opening = hours.start_hour * 60
    closing = hours.end_hour * 60
    earliest = opening
    if booking_date == today:
        earliest = max(earliest, now.hour * 60 + now.minute + policy.min_booking_notice_hours * 60)

    slots: list[TimeSlot] = []
    for start in range(opening, closing, interval_minutes):
        end = start + duration
        if end > closing or start < earliest:
            continue
        start_time = minutes_to_time(start)
        end_time = minutes_to_time(end)
        tables = await list_available_tables(
            table_repo,
            booking_repo,
            venue_id=policy.venue_id,
            booking_date=booking_date,
            start_time=start_time,
            end_time=end_time,
            party_size=party_size,
        )
        slots.append(TimeSlot(start_time=start_time, end_time=end_time, tables=tables))
    return slots
