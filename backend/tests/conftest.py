import asyncio
from datetime import date, datetime, time
from typing import Any, Iterable, Optional

import pytest
from gamehost.domain.errors import UniqueViolationError
from gamehost.models import (
    Booking,
    BookingSource,
    BookingStatus,
    Game,
    Venue,
    VenueBookingSettings,
    VenueOperatingHours,
    VenueTable,
)
from gamehost.utils.cache import view_cache

CREATED = datetime(2026, 1, 1, 12, 0)


class FakeStore:
    """In-memory rows shared by the fake repositories below."""

    def __init__(self) -> None:
        self.venues: dict[int, Venue] = {}
        self.settings: dict[int, VenueBookingSettings] = {}
        self.hours: dict[tuple[int, int], VenueOperatingHours] = {}
        self.tables: dict[int, VenueTable] = {}
        self.games: dict[int, Game] = {}
        self.bookings: dict[int, Booking] = {}
        self._next_booking_id = 1

    def add_venue(self, venue_id: int = 1, *, slug: str = "meeple-house", **settings: Any) -> Venue:
        venue = Venue(id=venue_id, name=slug.replace("-", " ").title(), slug=slug, created_at=CREATED)
        self.venues[venue_id] = venue
        values: dict[str, Any] = {
            "bookings_enabled": True,
            "require_phone": False,
            "require_email": False,
            "min_booking_notice_hours": 1,
            "max_advance_booking_days": 30,
            "default_duration_minutes": 120,
            "no_show_grace_minutes": 15,
            "timezone": "America/Los_Angeles",
        }
        values.update(settings)
        self.settings[venue_id] = VenueBookingSettings(
            id=venue_id, venue_id=venue_id, created_at=CREATED, updated_at=CREATED, **values
        )
        return venue

    def add_hours(self, venue_id: int, day_of_week: int, open_at: time, close_at: time, closed: bool = False) -> None:
        self.hours[(venue_id, day_of_week)] = VenueOperatingHours(
            venue_id=venue_id, day_of_week=day_of_week, open_time=open_at, close_time=close_at, is_closed=closed
        )

    def add_table(
        self,
        table_id: int,
        *,
        venue_id: int = 1,
        label: Optional[str] = None,
        capacity: Optional[int] = 4,
        is_active: bool = True,
    ) -> VenueTable:
        table = VenueTable(
            id=table_id,
            venue_id=venue_id,
            label=label or f"T{table_id}",
            capacity=capacity,
            is_active=is_active,
            created_at=CREATED,
        )
        self.tables[table_id] = table
        return table

    def add_game(self, game_id: int, *, venue_id: int = 1, title: str = "Catan", copies: Optional[int] = 1) -> Game:
        game = Game(id=game_id, venue_id=venue_id, title=title, copies_in_rotation=copies, created_at=CREATED)
        self.games[game_id] = game
        return game

    def add_booking(
        self,
        *,
        table_id: int,
        booking_date: date,
        start: str,
        end: str,
        venue_id: int = 1,
        game_id: Optional[int] = None,
        guest_name: str = "Existing Guest",
        party_size: int = 2,
        status: BookingStatus = BookingStatus.CONFIRMED,
        code: Optional[str] = None,
    ) -> Booking:
        booking_id = self._next_booking_id
        h1, m1 = (int(p) for p in start.split(":"))
        h2, m2 = (int(p) for p in end.split(":"))
        booking = Booking(
            venue_id=venue_id,
            table_id=table_id,
            game_id=game_id,
            booking_date=booking_date,
            start_time=time(h1, m1),
            end_time=time(h2, m2),
            party_size=party_size,
            guest_name=guest_name,
            status=status,
            source=BookingSource.STAFF,
            confirmation_code=code or f"CODE{booking_id:02d}",
            created_at=CREATED,
            updated_at=CREATED,
        )
        return self.store_booking(booking)

    def store_booking(self, booking: Booking) -> Booking:
        booking.id = self._next_booking_id
        self._next_booking_id += 1
        booking.table = self.tables.get(booking.table_id)
        booking.game = self.games.get(booking.game_id) if booking.game_id is not None else None
        self.bookings[booking.id] = booking
        return booking


class FakeVenueRepo:
    def __init__(self, store: FakeStore) -> None:
        self.store = store

    async def get(self, venue_id: int) -> Optional[Venue]:
        await asyncio.sleep(0)
        return self.store.venues.get(venue_id)

    async def get_or_create_booking_settings(self, venue_id: int) -> Optional[VenueBookingSettings]:
        await asyncio.sleep(0)
        return self.store.settings.get(venue_id)

    async def get_operating_hours(self, venue_id: int, day_of_week: int) -> Optional[VenueOperatingHours]:
        return self.store.hours.get((venue_id, day_of_week))


class FakeTableRepo:
    def __init__(self, store: FakeStore) -> None:
        self.store = store

    async def get(self, table_id: int) -> Optional[VenueTable]:
        await asyncio.sleep(0)
        return self.store.tables.get(table_id)

    async def list_for_venue(self, venue_id: int, *, include_inactive: bool = False) -> list[VenueTable]:
        tables = [t for t in self.store.tables.values() if t.venue_id == venue_id]
        if not include_inactive:
            tables = [t for t in tables if t.is_active]
        return sorted(tables, key=lambda t: t.label)


class FakeGameRepo:
    def __init__(self, store: FakeStore) -> None:
        self.store = store

    async def get(self, game_id: int) -> Optional[Game]:
        await asyncio.sleep(0)
        return self.store.games.get(game_id)


class FakeBookingRepo:
    def __init__(self, store: FakeStore) -> None:
        self.store = store
        self.unique_violations = 0
        self.insert_error: Optional[Exception] = None
        self.delete_error: Optional[Exception] = None
        self.inserted_codes: list[str] = []
        self.deleted: list[int] = []
        self.saved: list[int] = []

    def _active(self, rows: Iterable[Booking], excluded: Iterable[BookingStatus]) -> list[Booking]:
        skip = set(excluded)
        return sorted((b for b in rows if b.status not in skip), key=lambda b: (b.start_time, b.id))

    async def get(self, booking_id: int) -> Optional[Booking]:
        await asyncio.sleep(0)
        return self.store.bookings.get(booking_id)

    async def list_for_table_and_date(
        self, table_id: int, booking_date: date, excluded_statuses: Iterable[BookingStatus]
    ) -> list[Booking]:
        await asyncio.sleep(0)
        rows = [b for b in self.store.bookings.values() if b.table_id == table_id and b.booking_date == booking_date]
        return self._active(rows, excluded_statuses)

    async def list_for_game_and_date(
        self, game_id: int, booking_date: date, excluded_statuses: Iterable[BookingStatus]
    ) -> list[Booking]:
        await asyncio.sleep(0)
        rows = [b for b in self.store.bookings.values() if b.game_id == game_id and b.booking_date == booking_date]
        return self._active(rows, excluded_statuses)

    async def list_for_venue_between(
        self, venue_id: int, start: date, end: date, excluded_statuses: Iterable[BookingStatus]
    ) -> list[Booking]:
        rows = [
            b for b in self.store.bookings.values() if b.venue_id == venue_id and start <= b.booking_date <= end
        ]
        return sorted(self._active(rows, excluded_statuses), key=lambda b: (b.booking_date, b.start_time, b.id))

    async def confirmation_code_exists(self, code: str) -> bool:
        await asyncio.sleep(0)
        return any(b.confirmation_code == code for b in self.store.bookings.values())

    async def insert(self, booking: Booking) -> Booking:
        await asyncio.sleep(0)
        self.inserted_codes.append(booking.confirmation_code)
        if self.unique_violations > 0:
            self.unique_violations -= 1
            raise UniqueViolationError("duplicate confirmation_code")
        if self.insert_error is not None:
            raise self.insert_error
        return self.store.store_booking(booking)

    async def delete(self, booking_id: int) -> None:
        await asyncio.sleep(0)
        if self.delete_error is not None:
            raise self.delete_error
        self.deleted.append(booking_id)
        self.store.bookings.pop(booking_id, None)

    async def save(self, booking: Booking) -> Booking:
        self.saved.append(booking.id)
        self.store.bookings[booking.id] = booking
        return booking


class FakeInvalidator:
    def __init__(self, error: Optional[Exception] = None) -> None:
        self.calls: list[int] = []
        self.error = error

    async def invalidate_booking_views(self, venue_id: int) -> None:
        self.calls.append(venue_id)
        if self.error is not None:
            raise self.error


class Repos:
    def __init__(self, store: FakeStore) -> None:
        self.store = store
        self.venues = FakeVenueRepo(store)
        self.tables = FakeTableRepo(store)
        self.games = FakeGameRepo(store)
        self.bookings = FakeBookingRepo(store)
        self.invalidator = FakeInvalidator()

    @property
    def creation(self) -> tuple[FakeVenueRepo, FakeTableRepo, FakeGameRepo, FakeBookingRepo]:
        return self.venues, self.tables, self.games, self.bookings


@pytest.fixture
def store() -> FakeStore:
    return FakeStore()


@pytest.fixture
def repos(store: FakeStore) -> Repos:
    return Repos(store)


@pytest.fixture(autouse=True)
def _clear_view_cache() -> Iterable[None]:
    view_cache.clear()
    yield
    view_cache.clear()
