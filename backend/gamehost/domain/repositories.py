from __future__ import annotations

from datetime import date
from typing import Iterable, Protocol

from ..models import Booking, BookingStatus, Game, Venue, VenueBookingSettings, VenueOperatingHours, VenueTable


class VenueRepository(Protocol):
    async def get(self, venue_id: int) -> Venue | None: ...

    async def get_or_create_booking_settings(self, venue_id: int) -> VenueBookingSettings | None: ...

    async def get_operating_hours(self, venue_id: int, day_of_week: int) -> VenueOperatingHours | None: ...


class TableRepository(Protocol):
    async def get(self, table_id: int) -> VenueTable | None: ...

    async def list_for_venue(self, venue_id: int, *, include_inactive: bool = False) -> list[VenueTable]: ...


class GameRepository(Protocol):
    async def get(self, game_id: int) -> Game | None: ...


class BookingRepository(Protocol):
    async def get(self, booking_id: int) -> Booking | None: ...

    async def list_for_table_and_date(
        self,
        table_id: int,
        booking_date: date,
        excluded_statuses: Iterable[BookingStatus],
    ) -> list[Booking]: ...

    async def list_for_game_and_date(
        self,
        game_id: int,
        booking_date: date,
        excluded_statuses: Iterable[BookingStatus],
    ) -> list[Booking]: ...

    async def list_for_venue_between(
        self,
        venue_id: int,
        start: date,
        end: date,
        excluded_statuses: Iterable[BookingStatus],
    ) -> list[Booking]: ...

    async def confirmation_code_exists(self, code: str) -> bool: ...

    async def insert(self, booking: Booking) -> Booking: ...

    async def delete(self, booking_id: int) -> None: ...

    async def save(self, booking: Booking) -> Booking: ...


class ViewInvalidator(Protocol):
    async def invalidate_booking_views(self, venue_id: int) -> None: ...
