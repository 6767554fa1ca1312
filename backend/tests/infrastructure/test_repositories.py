from datetime import date, time
from typing import Any, Optional

import pytest
from gamehost.domain.errors import StoreError, UniqueViolationError
from gamehost.infrastructure.repositories import SqlAlchemyBookingRepository, is_unique_violation
from gamehost.models import Booking, BookingStatus
from sqlalchemy.exc import IntegrityError, OperationalError


class _PgError(Exception):
    sqlstate = "23505"


class DummySession:
    def __init__(self, commit_error: Optional[Exception] = None) -> None:
        self.commit_error = commit_error
        self.added: list[Any] = []
        self.commits = 0
        self.rollbacks = 0

    def add(self, obj: Any) -> None:
        self.added.append(obj)

    async def execute(self, *args: Any, **kwargs: Any) -> None:
        return None

    async def commit(self) -> None:
        if self.commit_error is not None:
            raise self.commit_error
        self.commits += 1

    async def rollback(self) -> None:
        self.rollbacks += 1


def _integrity(orig: Exception) -> IntegrityError:
    return IntegrityError("INSERT INTO bookings ...", {}, orig)


def _booking() -> Booking:
    return Booking(
        venue_id=1,
        table_id=1,
        booking_date=date(2026, 3, 3),
        start_time=time(19, 0),
        end_time=time(21, 0),
        party_size=2,
        guest_name="Ada",
        status=BookingStatus.CONFIRMED,
        confirmation_code="ABC234",
    )


@pytest.mark.parametrize(
    "orig",
    [
        Exception(1062, "Duplicate entry 'ABC234' for key 'uq_bookings_confirmation_code'"),
        _PgError("duplicate key value violates unique constraint"),
        Exception("UNIQUE constraint failed: bookings.confirmation_code"),
    ],
)
def test_unique_violations_are_recognised(orig: Exception) -> None:
    assert is_unique_violation(_integrity(orig))


def test_other_integrity_errors_are_not_unique_violations() -> None:
    orig = Exception(1452, "Cannot add or update a child row: a foreign key constraint fails")
    assert not is_unique_violation(_integrity(orig))


@pytest.mark.asyncio
async def test_insert_commits_immediately() -> None:
    session = DummySession()
    repo = SqlAlchemyBookingRepository(session)  # type: ignore[arg-type]
    booking = _booking()

    assert await repo.insert(booking) is booking
    assert session.added == [booking]
    assert session.commits == 1


@pytest.mark.asyncio
async def test_insert_maps_duplicate_code_to_unique_violation() -> None:
    session = DummySession(commit_error=_integrity(Exception(1062, "Duplicate entry 'ABC234'")))
    repo = SqlAlchemyBookingRepository(session)  # type: ignore[arg-type]

    with pytest.raises(UniqueViolationError):
        await repo.insert(_booking())
    assert session.rollbacks == 1


@pytest.mark.asyncio
async def test_insert_maps_other_integrity_errors_to_store_error() -> None:
    session = DummySession(commit_error=_integrity(Exception(1452, "foreign key constraint fails")))
    repo = SqlAlchemyBookingRepository(session)  # type: ignore[arg-type]

    with pytest.raises(StoreError) as excinfo:
        await repo.insert(_booking())
    assert not isinstance(excinfo.value, UniqueViolationError)
    assert session.rollbacks == 1


@pytest.mark.asyncio
async def test_delete_wraps_driver_failures() -> None:
    session = DummySession(commit_error=OperationalError("DELETE FROM bookings", {}, Exception("gone away")))
    repo = SqlAlchemyBookingRepository(session)  # type: ignore[arg-type]

    with pytest.raises(StoreError):
        await repo.delete(5)
    assert session.rollbacks == 1
