from datetime import date, datetime, time
from typing import Generic, Literal, Optional, TypeVar

from pydantic import BaseModel, Field, field_serializer

from .domain.conflicts import ConflictRecord, ConflictSeverity
from .domain.errors import ErrorCode
from .domain.validation import BookingRequest
from .models import Booking, BookingSource, BookingStatus, Game, VenueTable
from .usecases.availability import GameAvailability, TableAvailability, TableFit, TimeSlot
from .usecases.timeline import DayView, DaySummary, MonthView, TimeDistribution, TimelineBlock, WeekView
from .utils.time import format_time

T = TypeVar("T")


class ApiResult(BaseModel, Generic[T]):
    """Discriminated result: `data` on success, `error` and `code` on failure."""

    success: bool
    data: Optional[T] = None
    error: Optional[str] = None
    code: Optional[ErrorCode] = None

    @classmethod
    def ok(cls, data: T) -> "ApiResult[T]":
        return cls(success=True, data=data)


class BookingCreate(BaseModel):
    # Presence and format rules live in the domain validator so that the
    # first failing rule is what the caller sees.
    venue_id: Optional[int] = None
    table_id: Optional[int] = None
    booking_date: Optional[str] = None
    start_time: Optional[str] = None
    duration_minutes: Optional[int] = None
    end_time: Optional[str] = None
    party_size: Optional[int] = None
    guest_name: Optional[str] = None
    guest_email: Optional[str] = None
    guest_phone: Optional[str] = None
    notes: Optional[str] = None
    internal_notes: Optional[str] = None
    game_id: Optional[int] = None
    source: BookingSource = BookingSource.ONLINE

    def to_domain(self) -> BookingRequest:
        return BookingRequest(
            venue_id=self.venue_id,
            table_id=self.table_id,
            booking_date=self.booking_date,
            start_time=self.start_time,
            party_size=self.party_size,
            guest_name=self.guest_name,
            duration_minutes=self.duration_minutes,
            end_time=self.end_time,
            guest_email=self.guest_email,
            guest_phone=self.guest_phone,
            notes=self.notes,
            internal_notes=self.internal_notes,
            game_id=self.game_id,
            source=self.source,
        )


class BookingCancel(BaseModel):
    cancelled_by: Literal["guest", "venue"] = "guest"
    reason: Optional[str] = Field(default=None, max_length=1000)


class TableSummary(BaseModel):
    id: int
    label: str
    capacity: Optional[int]

    @classmethod
    def from_db(cls, table: VenueTable) -> "TableSummary":
        return cls(id=table.id, label=table.label, capacity=table.capacity)


class GameSummary(BaseModel):
    id: int
    title: str
    cover_image_url: Optional[str]

    @classmethod
    def from_db(cls, game: Game) -> "GameSummary":
        return cls(id=game.id, title=game.title, cover_image_url=game.cover_image_url)


class BookingRead(BaseModel):
    id: int
    venue_id: int
    table_id: int
    game_id: Optional[int]
    booking_date: date
    start_time: time
    end_time: time
    party_size: int
    guest_name: str
    guest_email: Optional[str]
    guest_phone: Optional[str]
    status: BookingStatus
    source: BookingSource
    confirmation_code: str
    notes: Optional[str]
    cancellation_reason: Optional[str] = None
    created_by: Optional[int] = None
    created_at: Optional[datetime] = None
    confirmed_at: Optional[datetime] = None
    arrived_at: Optional[datetime] = None
    seated_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None
    cancelled_at: Optional[datetime] = None
    no_show_at: Optional[datetime] = None
    table: Optional[TableSummary] = None
    game: Optional[GameSummary] = None

    @field_serializer("start_time", "end_time")
    def _ser_time(self, value: time) -> str:
        return format_time(value)

    @classmethod
    def from_db(
        cls,
        *,
        booking: Booking,
        table: Optional[VenueTable] = None,
        game: Optional[Game] = None,
    ) -> "BookingRead":
        return cls(
            id=booking.id,
            venue_id=booking.venue_id,
            table_id=booking.table_id,
            game_id=booking.game_id,
            booking_date=booking.booking_date,
            start_time=booking.start_time,
            end_time=booking.end_time,
            party_size=booking.party_size,
            guest_name=booking.guest_name,
            guest_email=booking.guest_email,
            guest_phone=booking.guest_phone,
            status=booking.status,
            source=booking.source,
            confirmation_code=booking.confirmation_code,
            notes=booking.notes,
            cancellation_reason=booking.cancellation_reason,
            created_by=booking.created_by,
            created_at=booking.created_at,
            confirmed_at=booking.confirmed_at,
            arrived_at=booking.arrived_at,
            seated_at=booking.seated_at,
            completed_at=booking.completed_at,
            cancelled_at=booking.cancelled_at,
            no_show_at=booking.no_show_at,
            table=TableSummary.from_db(table) if table is not None else None,
            game=GameSummary.from_db(game) if game is not None else None,
        )


class BookingConflictRead(BaseModel):
    booking_id: int
    guest_name: str
    start_time: str
    end_time: str


class TableAvailabilityRead(BaseModel):
    available: bool
    conflicts: list[BookingConflictRead]

    @classmethod
    def from_result(cls, result: TableAvailability) -> "TableAvailabilityRead":
        return cls(
            available=result.available,
            conflicts=[BookingConflictRead(**vars(c)) for c in result.conflicts],
        )


class GameAvailabilityRead(BaseModel):
    available: bool
    copies_total: int
    copies_reserved: int
    copies_available: int

    @classmethod
    def from_result(cls, result: GameAvailability) -> "GameAvailabilityRead":
        return cls(
            available=result.available,
            copies_total=result.copies_total,
            copies_reserved=result.copies_reserved,
            copies_available=result.copies_available,
        )


class TableFitRead(BaseModel):
    table: TableSummary
    exact_fit: bool
    tight_fit: bool

    @classmethod
    def from_result(cls, fit: TableFit) -> "TableFitRead":
        return cls(table=TableSummary.from_db(fit.table), exact_fit=fit.exact_fit, tight_fit=fit.tight_fit)


class TimeSlotRead(BaseModel):
    start_time: str
    end_time: str
    is_available: bool
    available_tables: list[TableFitRead]

    @classmethod
    def from_result(cls, slot: TimeSlot) -> "TimeSlotRead":
        return cls(
            start_time=slot.start_time,
            end_time=slot.end_time,
            is_available=slot.is_available,
            available_tables=[TableFitRead.from_result(fit) for fit in slot.tables],
        )


class TimelineBlockRead(BaseModel):
    id: str
    type: Literal["booking"] = "booking"
    table_id: Optional[int]
    table_label: str
    start: datetime
    end: datetime
    booking_id: int
    status: BookingStatus
    guest_name: str
    party_size: int
    game_title: Optional[str] = None

    @classmethod
    def from_block(cls, block: TimelineBlock) -> "TimelineBlockRead":
        return cls(
            id=block.id,
            table_id=block.table_id,
            table_label=block.table_label,
            start=block.start,
            end=block.end,
            booking_id=block.booking_id,
            status=block.status,
            guest_name=block.guest_name,
            party_size=block.party_size,
            game_title=block.game_title,
        )


class TimelineTableRead(BaseModel):
    id: int
    label: str
    capacity: Optional[int]
    is_active: bool


class ConflictRead(BaseModel):
    table_id: int
    block1_id: str
    block2_id: str
    overlap_minutes: int
    severity: ConflictSeverity

    @classmethod
    def from_record(cls, record: ConflictRecord) -> "ConflictRead":
        return cls(
            table_id=record.table_id,
            block1_id=record.block1_id,
            block2_id=record.block2_id,
            overlap_minutes=record.overlap_minutes,
            severity=record.severity,
        )


class OperatingHoursRead(BaseModel):
    start_hour: int
    end_hour: int


class DistributionRead(BaseModel):
    morning: int
    lunch: int
    afternoon: int
    evening: int

    @classmethod
    def from_distribution(cls, distribution: TimeDistribution) -> "DistributionRead":
        return cls(**vars(distribution))


def _tables(tables: list[VenueTable]) -> list[TimelineTableRead]:
    return [
        TimelineTableRead(id=t.id, label=t.label, capacity=t.capacity, is_active=t.is_active) for t in tables
    ]


class DayViewRead(BaseModel):
    view: Literal["day"] = "day"
    blocks: list[TimelineBlockRead]
    tables: list[TimelineTableRead]
    conflicts: list[ConflictRead]
    operating_hours: OperatingHoursRead

    @classmethod
    def from_view(cls, view: DayView) -> "DayViewRead":
        return cls(
            blocks=[TimelineBlockRead.from_block(b) for b in view.blocks],
            tables=_tables(view.tables),
            conflicts=[ConflictRead.from_record(c) for c in view.conflicts],
            operating_hours=OperatingHoursRead(**vars(view.operating_hours)),
        )


class WeekViewRead(BaseModel):
    view: Literal["week"] = "week"
    blocks_by_date: dict[date, list[TimelineBlockRead]]
    tables: list[TimelineTableRead]
    conflicts: list[ConflictRead]
    operating_hours: OperatingHoursRead
    week_start: date
    week_end: date
    distribution_by_date: dict[date, DistributionRead]

    @classmethod
    def from_view(cls, view: WeekView) -> "WeekViewRead":
        return cls(
            blocks_by_date={
                d: [TimelineBlockRead.from_block(b) for b in blocks] for d, blocks in view.blocks_by_date.items()
            },
            tables=_tables(view.tables),
            conflicts=[ConflictRead.from_record(c) for c in view.conflicts],
            operating_hours=OperatingHoursRead(**vars(view.operating_hours)),
            week_start=view.week_start,
            week_end=view.week_end,
            distribution_by_date={
                d: DistributionRead.from_distribution(dist) for d, dist in view.distribution_by_date.items()
            },
        )


class DaySummaryRead(BaseModel):
    total_bookings: int
    confirmed_count: int
    pending_count: int
    distribution: DistributionRead

    @classmethod
    def from_summary(cls, summary: DaySummary) -> "DaySummaryRead":
        return cls(
            total_bookings=summary.total_bookings,
            confirmed_count=summary.confirmed_count,
            pending_count=summary.pending_count,
            distribution=DistributionRead.from_distribution(summary.distribution),
        )


class MonthViewRead(BaseModel):
    view: Literal["month"] = "month"
    days: dict[date, DaySummaryRead]
    year: int
    month: int

    @classmethod
    def from_view(cls, view: MonthView) -> "MonthViewRead":
        return cls(
            days={d: DaySummaryRead.from_summary(s) for d, s in view.days.items()},
            year=view.year,
            month=view.month,
        )
