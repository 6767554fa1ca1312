from __future__ import annotations

from datetime import date
from typing import Iterable

from sqlalchemy import Select, delete, select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from ..domain.errors import StoreError, UniqueViolationError
from ..domain.repositories import BookingRepository, GameRepository, TableRepository, VenueRepository
from ..models import (
    Booking,
    BookingStatus,
    Game,
    Venue,
    VenueBookingSettings,
    VenueOperatingHours,
    VenueTable,
)
from ..utils.time import utc_now_naive

_MYSQL_DUPLICATE_ENTRY = 1062
_POSTGRES_UNIQUE_VIOLATION = "23505"


def is_unique_violation(exc: IntegrityError) -> bool:
    orig = getattr(exc, "orig", None)
    args = getattr(orig, "args", ())
    if args and args[0] == _MYSQL_DUPLICATE_ENTRY:
        return True
    if getattr(orig, "sqlstate", None) == _POSTGRES_UNIQUE_VIOLATION:
        return True
    if getattr(orig, "pgcode", None) == _POSTGRES_UNIQUE_VIOLATION:
        return True
    text = str(orig if orig is not None else exc)
    return "UNIQUE constraint failed" in text or "Duplicate entry" in text


def _with_joins(stmt: Select[tuple[Booking]]) -> Select[tuple[Booking]]:
    return stmt.options(selectinload(Booking.table), selectinload(Booking.game))


def _active(stmt: Select[tuple[Booking]], excluded_statuses: Iterable[BookingStatus]) -> Select[tuple[Booking]]:
    excluded = list(excluded_statuses)
    if excluded:
        stmt = stmt.where(Booking.status.not_in(excluded))
    return stmt


class SqlAlchemyVenueRepository(VenueRepository):
    def __init__(self, session: AsyncSession) -> None:
        self.session = session

    async def get(self, venue_id: int) -> Venue | None:
        return await self.session.get(Venue, venue_id)

    async def get_or_create_booking_settings(self, venue_id: int) -> VenueBookingSettings | None:
        """Settings row for the venue, created with defaults on first use. None if the venue is unknown."""
        settings = await self.session.scalar(
            select(VenueBookingSettings).where(VenueBookingSettings.venue_id == venue_id)
        )
        if settings is not None:
            return settings
        if await self.get(venue_id) is None:
            return None
        now = utc_now_naive()
        settings = VenueBookingSettings(
            venue_id=venue_id,
            bookings_enabled=True,
            require_phone=False,
            require_email=False,
            min_booking_notice_hours=1,
            max_advance_booking_days=30,
            default_duration_minutes=120,
            no_show_grace_minutes=15,
            timezone="America/Los_Angeles",
            created_at=now,
            updated_at=now,
        )
        self.session.add(settings)
        await self.session.flush()
        return settings

    async def get_operating_hours(self, venue_id: int, day_of_week: int) -> VenueOperatingHours | None:
        return await self.session.scalar(
            select(VenueOperatingHours).where(
                VenueOperatingHours.venue_id == venue_id,
                VenueOperatingHours.day_of_week == day_of_week,
            )
        )


class SqlAlchemyTableRepository(TableRepository):
    def __init__(self, session: AsyncSession) -> None:
        self.session = session

    async def get(self, table_id: int) -> VenueTable | None:
        return await self.session.get(VenueTable, table_id)

    async def list_for_venue(self, venue_id: int, *, include_inactive: bool = False) -> list[VenueTable]:
        stmt = select(VenueTable).where(VenueTable.venue_id == venue_id).order_by(VenueTable.label)
        if not include_inactive:
            stmt = stmt.where(VenueTable.is_active.is_(True))
        return list((await self.session.scalars(stmt)).all())


class SqlAlchemyGameRepository(GameRepository):
    def __init__(self, session: AsyncSession) -> None:
        self.session = session

    async def get(self, game_id: int) -> Game | None:
        return await self.session.get(Game, game_id)


class SqlAlchemyBookingRepository(BookingRepository):
    """
    Writes commit immediately: the post-insert verification in the booking
    use case must observe rows committed by concurrent requests, and other
    requests must observe ours.
    """

    def __init__(self, session: AsyncSession) -> None:
        self.session = session

    async def get(self, booking_id: int) -> Booking | None:
        stmt = _with_joins(select(Booking).where(Booking.id == booking_id))
        return await self.session.scalar(stmt)

    async def list_for_table_and_date(
        self,
        table_id: int,
        booking_date: date,
        excluded_statuses: Iterable[BookingStatus],
    ) -> list[Booking]:
        stmt = select(Booking).where(Booking.table_id == table_id, Booking.booking_date == booking_date)
        stmt = _active(stmt, excluded_statuses).order_by(Booking.start_time, Booking.id)
        return list((await self.session.scalars(stmt)).all())

    async def list_for_game_and_date(
        self,
        game_id: int,
        booking_date: date,
        excluded_statuses: Iterable[BookingStatus],
    ) -> list[Booking]:
        stmt = select(Booking).where(Booking.game_id == game_id, Booking.booking_date == booking_date)
        stmt = _active(stmt, excluded_statuses).order_by(Booking.start_time, Booking.id)
        return list((await self.session.scalars(stmt)).all())

    async def list_for_venue_between(
        self,
        venue_id: int,
        start: date,
        end: date,
        excluded_statuses: Iterable[BookingStatus],
    ) -> list[Booking]:
        stmt = select(Booking).where(
            Booking.venue_id == venue_id,
            Booking.booking_date >= start,
            Booking.booking_date <= end,
        )
        stmt = _with_joins(_active(stmt, excluded_statuses)).order_by(
            Booking.booking_date, Booking.start_time, Booking.id
        )
        return list((await self.session.scalars(stmt)).all())

    async def confirmation_code_exists(self, code: str) -> bool:
        stmt = select(Booking.id).where(Booking.confirmation_code == code)
        return await self.session.scalar(stmt) is not None

    async def insert(self, booking: Booking) -> Booking:
        self.session.add(booking)
        try:
            await self.session.commit()
        except IntegrityError as exc:
            await self.session.rollback()
            if is_unique_violation(exc):
                raise UniqueViolationError(str(exc.orig)) from exc
            raise StoreError("booking insert rejected by the store") from exc
        except SQLAlchemyError as exc:
            await self.session.rollback()
            raise StoreError("booking insert failed") from exc
        return booking

    async def delete(self, booking_id: int) -> None:
        try:
            await self.session.execute(delete(Booking).where(Booking.id == booking_id))
            await self.session.commit()
        except SQLAlchemyError as exc:
            await self.session.rollback()
            raise StoreError(f"failed to delete booking {booking_id}") from exc

    async def save(self, booking: Booking) -> Booking:
        self.session.add(booking)
        try:
            await self.session.commit()
        except SQLAlchemyError as exc:
            await self.session.rollback()
            raise StoreError(f"failed to update booking {booking.id}") from exc
        return booking
