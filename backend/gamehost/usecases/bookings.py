from __future__ import annotations

import asyncio
import logging
from datetime import date, datetime
from typing import Literal, Optional
from zoneinfo import ZoneInfo

from ..domain.confirmation import assign_confirmation_code
from ..domain.errors import (
    BookingsDisabledError,
    BookingValidationError,
    CapacityError,
    ConflictError,
    NotFoundError,
    StoreError,
    UniqueViolationError,
)
from ..domain.policy import VenuePolicy
from ..domain.repositories import BookingRepository, GameRepository, TableRepository, VenueRepository, ViewInvalidator
from ..domain.services import TIMESTAMP_FIELDS, ensure_no_show_allowed, ensure_transition
from ..domain.validation import BookingRequest, validate_booking_request
from ..models import INACTIVE_BOOKING_STATUSES, Booking, BookingSource, BookingStatus, Game, VenueTable
from ..utils.audit_log import emit_audit_log
from ..utils.time import (
    add_minutes_to_time,
    combine,
    normalize_time,
    parse_date,
    to_time,
    utc_now_naive,
    venue_now,
)
from .availability import (
    TableAvailability,
    check_game_availability,
    check_table_availability,
    overlapping_bookings,
)

logger = logging.getLogger(__name__)

TABLE_UNAVAILABLE_MESSAGE = "This table is no longer available for the selected time. Please choose another slot."


async def resolve_policy(venue_repo: VenueRepository, venue_id: Optional[int]) -> VenuePolicy:
    settings = await venue_repo.get_or_create_booking_settings(venue_id) if venue_id is not None else None
    if settings is None:
        raise NotFoundError("Venue not found.")
    return VenuePolicy.from_settings(settings)


def _local_now(policy: VenuePolicy, now: Optional[datetime]) -> datetime:
    """Naive venue-local wall clock."""
    if now is None:
        return venue_now(policy.timezone).replace(tzinfo=None)
    if now.tzinfo is not None:
        return now.astimezone(ZoneInfo(policy.timezone)).replace(tzinfo=None)
    return now


def _resolve_end_time(request: BookingRequest, start_time: str, policy: VenuePolicy) -> str:
    if request.end_time:
        return normalize_time(request.end_time)
    minutes = request.duration_minutes or policy.default_duration_minutes
    try:
        return add_minutes_to_time(start_time, minutes)
    except ValueError as exc:
        raise BookingValidationError("Bookings must end on the same day they start") from exc


def _clean(value: Optional[str]) -> Optional[str]:
    if value is None:
        return None
    return value.strip() or None


def _build_booking(
    request: BookingRequest,
    *,
    booking_date: date,
    start_time: str,
    end_time: str,
    confirmation_code: str,
    created_by: Optional[int],
) -> Booking:
    now = utc_now_naive()
    return Booking(
        venue_id=request.venue_id,
        table_id=request.table_id,
        game_id=request.game_id,
        booking_date=booking_date,
        start_time=to_time(start_time),
        end_time=to_time(end_time),
        party_size=request.party_size,
        guest_name=request.guest_name.strip(),
        guest_email=_clean(request.guest_email),
        guest_phone=_clean(request.guest_phone),
        notes=_clean(request.notes),
        internal_notes=_clean(request.internal_notes),
        status=BookingStatus.CONFIRMED,
        source=request.source,
        confirmation_code=confirmation_code,
        created_by=created_by,
        confirmed_at=now,
        created_at=now,
        updated_at=now,
    )


def _table_conflict_message(availability: TableAvailability) -> str:
    if not availability.conflicts:
        return TABLE_UNAVAILABLE_MESSAGE
    first = availability.conflicts[0]
    return f"{TABLE_UNAVAILABLE_MESSAGE} Conflicting booking: {first.guest_name} ({first.start_time}-{first.end_time})"


async def _load_table(table_repo: TableRepository, request: BookingRequest) -> VenueTable:
    table = await table_repo.get(request.table_id)
    if table is None:
        raise NotFoundError("Table not found.")
    if not table.is_active:
        raise NotFoundError("This table is not currently available for booking.")
    if table.venue_id != request.venue_id:
        raise BookingValidationError("Table does not belong to the specified venue.")
    if table.capacity is not None and request.party_size > table.capacity:
        raise CapacityError(
            f"This table can accommodate up to {table.capacity} guests. "
            "Please choose a larger table or reduce your party size."
        )
    return table


async def _load_game(game_repo: GameRepository, request: BookingRequest) -> Game:
    game = await game_repo.get(request.game_id)
    if game is None:
        raise NotFoundError("The selected game was not found.")
    if game.venue_id != request.venue_id:
        raise BookingValidationError("This game is not available at the selected venue.")
    return game


async def _reload(
    table_repo: TableRepository, game_repo: GameRepository, request: BookingRequest
) -> tuple[VenueTable, Optional[Game]]:
    table = await table_repo.get(request.table_id)
    if table is None:
        raise StoreError("Failed to create booking. Please try again.")
    game = await game_repo.get(request.game_id) if request.game_id is not None else None
    return table, game


async def _insert_with_retry(
    booking_repo: BookingRepository,
    request: BookingRequest,
    *,
    booking_date: date,
    start_time: str,
    end_time: str,
    created_by: Optional[int],
    code_attempts: int,
    insert_attempts: int,
    insert_backoff: float,
) -> Booking:
    code = await assign_confirmation_code(booking_repo.confirmation_code_exists, attempts=code_attempts)
    for attempt in range(1, insert_attempts + 1):
        if attempt > 1:
            retry = await check_table_availability(
                booking_repo,
                table_id=request.table_id,
                booking_date=booking_date,
                start_time=start_time,
                end_time=end_time,
            )
            if not retry.available:
                raise ConflictError(TABLE_UNAVAILABLE_MESSAGE)

        record = _build_booking(
            request,
            booking_date=booking_date,
            start_time=start_time,
            end_time=end_time,
            confirmation_code=code,
            created_by=created_by,
        )
        try:
            return await booking_repo.insert(record)
        except UniqueViolationError:
            logger.warning("booking insert attempt %d hit a unique constraint", attempt)
            if attempt == insert_attempts:
                raise ConflictError(TABLE_UNAVAILABLE_MESSAGE) from None
            await asyncio.sleep(insert_backoff * attempt)
            # The only unique key on bookings is the confirmation code.
            code = await assign_confirmation_code(booking_repo.confirmation_code_exists, attempts=code_attempts)
        except StoreError as exc:
            logger.error("booking insert attempt %d failed: %s", attempt, exc)
            raise StoreError("Failed to create booking. Please try again.") from exc
    raise StoreError("Failed to create booking after multiple attempts. Please try again.")


async def _find_race(
    booking_repo: BookingRepository,
    created: Booking,
    *,
    start_time: str,
    end_time: str,
    game: Optional[Game],
) -> Optional[str]:
    """
    Re-read the table (and game) after insert. Only rows inserted before ours
    count, so the earliest writer keeps its booking and later ones back out.
    """
    table_rows = await booking_repo.list_for_table_and_date(
        created.table_id, created.booking_date, INACTIVE_BOOKING_STATUSES
    )
    earlier = [
        b
        for b in overlapping_bookings(table_rows, start_time, end_time, exclude_booking_id=created.id)
        if b.id < created.id
    ]
    if earlier:
        return "table"

    if game is not None:
        copies_total = game.copies_in_rotation if game.copies_in_rotation is not None else 1
        game_rows = await booking_repo.list_for_game_and_date(
            game.id, created.booking_date, INACTIVE_BOOKING_STATUSES
        )
        earlier_copies = [
            b
            for b in overlapping_bookings(game_rows, start_time, end_time, exclude_booking_id=created.id)
            if b.id < created.id
        ]
        if len(earlier_copies) >= copies_total:
            return "game"
    return None


async def _compensate(booking_repo: BookingRepository, created: Booking, *, reason: str) -> None:
    try:
        await booking_repo.delete(created.id)
    except StoreError:
        logger.exception("compensating delete failed for booking %s", created.id)
    try:
        emit_audit_log(
            action="booking.rolled_back",
            initiator="system",
            booking_id=created.id,
            venue_id=created.venue_id,
            table_id=created.table_id,
            user_id=created.created_by,
            party_size=created.party_size,
            status_from=created.status,
            status_to=None,
            message=f"{reason} conflict detected after insert",
        )
    except RuntimeError:
        logger.exception("failed to audit rollback of booking %s", created.id)


async def _invalidate(invalidator: Optional[ViewInvalidator], venue_id: int) -> None:
    if invalidator is None:
        return
    try:
        await invalidator.invalidate_booking_views(venue_id)
    except Exception as exc:
        logger.warning("failed to invalidate booking views for venue %s: %s", venue_id, exc)


async def create_booking(
    venue_repo: VenueRepository,
    table_repo: TableRepository,
    game_repo: GameRepository,
    booking_repo: BookingRepository,
    *,
    request: BookingRequest,
    created_by: Optional[int] = None,
    invalidator: Optional[ViewInvalidator] = None,
    now: Optional[datetime] = None,
    code_attempts: int = 5,
    insert_attempts: int = 3,
    insert_backoff: float = 0.1,
) -> tuple[Booking, VenueTable, Optional[Game]]:
    """
    Validate, check availability, insert, then verify the insert did not race
    another writer. A detected race deletes the new row and raises ConflictError.

    `now` is the venue-local wall clock, defaulting to the policy timezone.
    """
    policy = await resolve_policy(venue_repo, request.venue_id)
    if not policy.bookings_enabled and request.source == BookingSource.ONLINE:
        raise BookingsDisabledError("Online bookings are currently disabled for this venue.")

    validation = validate_booking_request(request, policy, now=_local_now(policy, now))
    if not validation.valid:
        raise BookingValidationError(validation.errors[0])

    booking_date = parse_date(request.booking_date)
    start_time = normalize_time(request.start_time)
    end_time = _resolve_end_time(request, start_time, policy)

    table = await _load_table(table_repo, request)

    availability = await check_table_availability(
        booking_repo,
        table_id=table.id,
        booking_date=booking_date,
        start_time=start_time,
        end_time=end_time,
    )
    if not availability.available:
        raise ConflictError(_table_conflict_message(availability))

    game: Optional[Game] = None
    if request.game_id is not None:
        game = await _load_game(game_repo, request)
        game_availability = await check_game_availability(
            game_repo,
            booking_repo,
            game_id=game.id,
            booking_date=booking_date,
            start_time=start_time,
            end_time=end_time,
        )
        if not game_availability.available:
            raise ConflictError(
                f'Sorry, all {game_availability.copies_total} copies of "{game.title}" are reserved '
                f"for this time slot. {game_availability.copies_reserved} copy/copies already booked."
            )

    created = await _insert_with_retry(
        booking_repo,
        request,
        booking_date=booking_date,
        start_time=start_time,
        end_time=end_time,
        created_by=created_by,
        code_attempts=code_attempts,
        insert_attempts=insert_attempts,
        insert_backoff=insert_backoff,
    )

    # A rejected insert attempt rolls the session back, expiring the rows loaded above.
    table, game = await _reload(table_repo, game_repo, request)

    race = await _find_race(booking_repo, created, start_time=start_time, end_time=end_time, game=game)
    if race == "table":
        await _compensate(booking_repo, created, reason=race)
        raise ConflictError(TABLE_UNAVAILABLE_MESSAGE)
    if race == "game":
        game_title = game.title
        await _compensate(booking_repo, created, reason=race)
        raise ConflictError(f'Sorry, all copies of "{game_title}" were just reserved for this time slot.')

    await _invalidate(invalidator, created.venue_id)
    return created, table, game


async def get_booking(booking_repo: BookingRepository, *, booking_id: int) -> Booking:
    booking = await booking_repo.get(booking_id)
    if booking is None:
        raise NotFoundError("Booking not found.")
    return booking


async def _transition(
    booking_repo: BookingRepository,
    booking: Booking,
    target: BookingStatus,
    *,
    invalidator: Optional[ViewInvalidator],
) -> tuple[Booking, BookingStatus]:
    previous = booking.status
    ensure_transition(previous, target)
    now = utc_now_naive()
    booking.status = target
    setattr(booking, TIMESTAMP_FIELDS[target], now)
    booking.updated_at = now
    updated = await booking_repo.save(booking)
    await _invalidate(invalidator, updated.venue_id)
    return updated, previous


async def confirm_booking(
    booking_repo: BookingRepository,
    *,
    booking_id: int,
    invalidator: Optional[ViewInvalidator] = None,
) -> tuple[Booking, BookingStatus]:
    booking = await get_booking(booking_repo, booking_id=booking_id)
    return await _transition(booking_repo, booking, BookingStatus.CONFIRMED, invalidator=invalidator)


async def cancel_booking(
    booking_repo: BookingRepository,
    *,
    booking_id: int,
    cancelled_by: Literal["guest", "venue"],
    reason: Optional[str] = None,
    invalidator: Optional[ViewInvalidator] = None,
) -> tuple[Booking, BookingStatus]:
    booking = await get_booking(booking_repo, booking_id=booking_id)
    target = BookingStatus.CANCELLED_BY_GUEST if cancelled_by == "guest" else BookingStatus.CANCELLED_BY_VENUE
    booking.cancellation_reason = _clean(reason)
    return await _transition(booking_repo, booking, target, invalidator=invalidator)


async def mark_arrived(
    booking_repo: BookingRepository,
    *,
    booking_id: int,
    invalidator: Optional[ViewInvalidator] = None,
) -> tuple[Booking, BookingStatus]:
    booking = await get_booking(booking_repo, booking_id=booking_id)
    return await _transition(booking_repo, booking, BookingStatus.ARRIVED, invalidator=invalidator)


async def mark_no_show(
    venue_repo: VenueRepository,
    booking_repo: BookingRepository,
    *,
    booking_id: int,
    now: Optional[datetime] = None,
    invalidator: Optional[ViewInvalidator] = None,
) -> tuple[Booking, BookingStatus]:
    booking = await get_booking(booking_repo, booking_id=booking_id)
    ensure_transition(booking.status, BookingStatus.NO_SHOW)
    policy = await resolve_policy(venue_repo, booking.venue_id)
    ensure_no_show_allowed(
        combine(booking.booking_date, booking.start_time),
        _local_now(policy, now),
        grace_minutes=policy.no_show_grace_minutes,
    )
    return await _transition(booking_repo, booking, BookingStatus.NO_SHOW, invalidator=invalidator)


async def seat_booking(
    booking_repo: BookingRepository,
    *,
    booking_id: int,
    invalidator: Optional[ViewInvalidator] = None,
) -> tuple[Booking, BookingStatus]:
    booking = await get_booking(booking_repo, booking_id=booking_id)
    return await _transition(booking_repo, booking, BookingStatus.SEATED, invalidator=invalidator)


async def complete_booking(
    booking_repo: BookingRepository,
    *,
    booking_id: int,
    invalidator: Optional[ViewInvalidator] = None,
) -> tuple[Booking, BookingStatus]:
    booking = await get_booking(booking_repo, booking_id=booking_id)
    return await _transition(booking_repo, booking, BookingStatus.COMPLETED, invalidator=invalidator)


async def list_venue_bookings(
    venue_repo: VenueRepository,
    booking_repo: BookingRepository,
    *,
    venue_id: int,
    day: date,
    include_inactive: bool = True,
) -> list[Booking]:
    """Bookings for one venue and day ordered by start time, as the admin list shows them."""
    if await venue_repo.get(venue_id) is None:
        raise NotFoundError("Venue not found.")
    excluded = () if include_inactive else INACTIVE_BOOKING_STATUSES
    return await booking_repo.list_for_venue_between(venue_id, day, day, excluded)
