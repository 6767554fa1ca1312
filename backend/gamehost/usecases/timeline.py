from __future__ import annotations

from collections import defaultdict
from dataclasses import dataclass, field
from datetime import date, timedelta
from typing import Literal, Optional

from ..domain.conflicts import ConflictRecord, IntervalBlock, detect_conflicts
from ..domain.errors import NotFoundError
from ..domain.repositories import BookingRepository, TableRepository, VenueRepository
from ..models import INACTIVE_BOOKING_STATUSES, Booking, BookingStatus, VenueTable
from ..utils.time import combine, month_bounds, sunday_based_weekday, week_start

DEFAULT_START_HOUR = 9
DEFAULT_END_HOUR = 23

TimeSegment = Literal["morning", "lunch", "afternoon", "evening"]

CONFIRMED_LIKE_STATUSES = frozenset(
    {BookingStatus.CONFIRMED, BookingStatus.ARRIVED, BookingStatus.SEATED, BookingStatus.COMPLETED}
)


@dataclass(frozen=True)
class TimelineBlock(IntervalBlock):
    table_label: str
    booking_id: int
    status: BookingStatus
    guest_name: str
    party_size: int
    game_title: Optional[str] = None


@dataclass(frozen=True)
class OperatingHours:
    start_hour: int = DEFAULT_START_HOUR
    end_hour: int = DEFAULT_END_HOUR


@dataclass
class TimeDistribution:
    morning: int = 0
    lunch: int = 0
    afternoon: int = 0
    evening: int = 0

    def add(self, segment: TimeSegment) -> None:
        setattr(self, segment, getattr(self, segment) + 1)


@dataclass
class DaySummary:
    total_bookings: int = 0
    confirmed_count: int = 0
    pending_count: int = 0
    distribution: TimeDistribution = field(default_factory=TimeDistribution)


@dataclass(frozen=True)
class DayView:
    blocks: list[TimelineBlock]
    tables: list[VenueTable]
    conflicts: list[ConflictRecord]
    operating_hours: OperatingHours


@dataclass(frozen=True)
class WeekView:
    blocks_by_date: dict[date, list[TimelineBlock]]
    tables: list[VenueTable]
    conflicts: list[ConflictRecord]
    operating_hours: OperatingHours
    week_start: date
    week_end: date
    distribution_by_date: dict[date, TimeDistribution]


@dataclass(frozen=True)
class MonthView:
    days: dict[date, DaySummary]
    year: int
    month: int


def time_segment(hour: int) -> TimeSegment:
    if hour < 12:
        return "morning"
    if hour < 15:
        return "lunch"
    if hour < 18:
        return "afternoon"
    return "evening"


def booking_to_block(booking: Booking) -> TimelineBlock:
    table = booking.table
    game = booking.game
    return TimelineBlock(
        id=f"booking-{booking.id}",
        table_id=booking.table_id,
        start=combine(booking.booking_date, booking.start_time),
        end=combine(booking.booking_date, booking.end_time),
        table_label=table.label if table is not None else "Unassigned",
        booking_id=booking.id,
        status=booking.status,
        guest_name=booking.guest_name,
        party_size=booking.party_size,
        game_title=game.title if game is not None else None,
    )


async def _ensure_venue(venue_repo: VenueRepository, venue_id: int) -> None:
    if await venue_repo.get(venue_id) is None:
        raise NotFoundError("Venue not found.")


async def get_operating_hours(venue_repo: VenueRepository, venue_id: int, day: date) -> OperatingHours:
    """Hours for the weekday of `day`; closed or unconfigured days use the 09-23 default."""
    row = await venue_repo.get_operating_hours(venue_id, sunday_based_weekday(day))
    if row is None or row.is_closed:
        return OperatingHours()
    return OperatingHours(start_hour=row.open_time.hour, end_hour=row.close_time.hour)


async def get_day_view(
    venue_repo: VenueRepository,
    table_repo: TableRepository,
    booking_repo: BookingRepository,
    *,
    venue_id: int,
    day: date,
) -> DayView:
    await _ensure_venue(venue_repo, venue_id)
    bookings = await booking_repo.list_for_venue_between(venue_id, day, day, INACTIVE_BOOKING_STATUSES)
    blocks = [booking_to_block(b) for b in bookings]
    return DayView(
        blocks=blocks,
        tables=await table_repo.list_for_venue(venue_id),
        conflicts=detect_conflicts(blocks),
        operating_hours=await get_operating_hours(venue_repo, venue_id, day),
    )


async def get_week_view(
    venue_repo: VenueRepository,
    table_repo: TableRepository,
    booking_repo: BookingRepository,
    *,
    venue_id: int,
    day: date,
) -> WeekView:
    """Sunday-to-Saturday week containing `day`, with one conflict pass over all seven days."""
    await _ensure_venue(venue_repo, venue_id)
    start = week_start(day)
    end = start + timedelta(days=6)
    dates = [start + timedelta(days=offset) for offset in range(7)]

    bookings = await booking_repo.list_for_venue_between(venue_id, start, end, INACTIVE_BOOKING_STATUSES)
    blocks_by_date: dict[date, list[TimelineBlock]] = {d: [] for d in dates}
    distribution_by_date: dict[date, TimeDistribution] = {d: TimeDistribution() for d in dates}
    all_blocks: list[TimelineBlock] = []
    for booking in bookings:
        block = booking_to_block(booking)
        blocks_by_date[booking.booking_date].append(block)
        distribution_by_date[booking.booking_date].add(time_segment(booking.start_time.hour))
        all_blocks.append(block)

    return WeekView(
        blocks_by_date=blocks_by_date,
        tables=await table_repo.list_for_venue(venue_id),
        conflicts=detect_conflicts(all_blocks),
        operating_hours=await get_operating_hours(venue_repo, venue_id, start),
        week_start=start,
        week_end=end,
        distribution_by_date=distribution_by_date,
    )


async def get_month_view(
    venue_repo: VenueRepository,
    booking_repo: BookingRepository,
    *,
    venue_id: int,
    year: int,
    month: int,
) -> MonthView:
    await _ensure_venue(venue_repo, venue_id)
    first, last = month_bounds(year, month)
    bookings = await booking_repo.list_for_venue_between(venue_id, first, last, INACTIVE_BOOKING_STATUSES)

    days: dict[date, DaySummary] = defaultdict(DaySummary)
    for booking in bookings:
        summary = days[booking.booking_date]
        summary.total_bookings += 1
        if booking.status in CONFIRMED_LIKE_STATUSES:
            summary.confirmed_count += 1
        elif booking.status == BookingStatus.PENDING:
            summary.pending_count += 1
        summary.distribution.add(time_segment(booking.start_time.hour))
    return MonthView(days=dict(days), year=year, month=month)
