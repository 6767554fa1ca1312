from datetime import date
from typing import Awaitable, Callable, Optional

from fastapi import APIRouter, Depends, Path, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from ..config import Settings, get_settings
from ..deps import get_current_user_id, get_optional_user_id, get_session
from ..domain.errors import BookingError, ErrorCode
from ..infrastructure.invalidation import CacheViewInvalidator
from ..infrastructure.repositories import (
    SqlAlchemyBookingRepository,
    SqlAlchemyGameRepository,
    SqlAlchemyTableRepository,
    SqlAlchemyVenueRepository,
)
from ..models import Booking, BookingStatus
from ..schemas import (
    ApiResult,
    BookingCancel,
    BookingCreate,
    BookingRead,
    GameAvailabilityRead,
    TableAvailabilityRead,
    TableFitRead,
    TimeSlotRead,
)
from ..usecases import availability as availability_usecase
from ..usecases import bookings as booking_usecase
from ..utils.audit_log import AuditAction, AuditInitiator, emit_audit_log
from ..utils.cache import CacheKeys, view_cache
from .errors import BookingHTTPException

router = APIRouter(prefix="", tags=["bookings"])

TRANSITION_ACTIONS: dict[BookingStatus, AuditAction] = {
    BookingStatus.CONFIRMED: "booking.confirmed",
    BookingStatus.ARRIVED: "booking.arrived",
    BookingStatus.SEATED: "booking.seated",
    BookingStatus.COMPLETED: "booking.completed",
    BookingStatus.NO_SHOW: "booking.no_show",
    BookingStatus.CANCELLED_BY_GUEST: "booking.cancelled",
    BookingStatus.CANCELLED_BY_VENUE: "booking.cancelled",
}


def _audit(
    *,
    action: AuditAction,
    initiator: AuditInitiator,
    booking: Booking,
    user_id: Optional[int],
    status_from: Optional[BookingStatus],
    extra: Optional[dict[str, object]] = None,
) -> None:
    try:
        emit_audit_log(
            action=action,
            initiator=initiator,
            booking_id=booking.id,
            venue_id=booking.venue_id,
            table_id=booking.table_id,
            user_id=user_id,
            party_size=booking.party_size,
            status_from=status_from,
            status_to=booking.status,
            extra=extra,
        )
    except RuntimeError as exc:
        raise BookingHTTPException(ErrorCode.UNKNOWN, "failed to write audit log") from exc


@router.post("/bookings", response_model=ApiResult[BookingRead], status_code=status.HTTP_201_CREATED)
async def create_booking(
    payload: BookingCreate,
    session: AsyncSession = Depends(get_session),
    user_id: Optional[int] = Depends(get_optional_user_id),
    settings: Settings = Depends(get_settings),
) -> ApiResult[BookingRead]:
    venue_repo = SqlAlchemyVenueRepository(session)
    try:
        booking, table, game = await booking_usecase.create_booking(
            venue_repo,
            SqlAlchemyTableRepository(session),
            SqlAlchemyGameRepository(session),
            SqlAlchemyBookingRepository(session),
            request=payload.to_domain(),
            created_by=user_id,
            invalidator=CacheViewInvalidator(view_cache, venue_repo),
            code_attempts=settings.confirmation_code_attempts,
            insert_attempts=settings.booking_insert_attempts,
            insert_backoff=settings.booking_insert_backoff,
        )
    except BookingError as exc:
        raise BookingHTTPException.from_error(exc)

    _audit(
        action="booking.created",
        initiator="staff" if user_id is not None else "guest",
        booking=booking,
        user_id=user_id,
        status_from=None,
        extra={"source": booking.source, "game_id": booking.game_id},
    )
    return ApiResult.ok(BookingRead.from_db(booking=booking, table=table, game=game))


@router.get("/bookings/{booking_id}", response_model=ApiResult[BookingRead])
async def get_booking(
    booking_id: int = Path(..., ge=1),
    session: AsyncSession = Depends(get_session),
    user_id: int = Depends(get_current_user_id),
) -> ApiResult[BookingRead]:
    booking_repo = SqlAlchemyBookingRepository(session)
    try:
        booking = await booking_usecase.get_booking(booking_repo, booking_id=booking_id)
    except BookingError as exc:
        raise BookingHTTPException.from_error(exc)
    return ApiResult.ok(BookingRead.from_db(booking=booking, table=booking.table, game=booking.game))


TransitionCall = Callable[
    [SqlAlchemyVenueRepository, SqlAlchemyBookingRepository, CacheViewInvalidator],
    Awaitable[tuple[Booking, BookingStatus]],
]


async def _run_transition(session: AsyncSession, user_id: int, call: TransitionCall) -> ApiResult[BookingRead]:
    venue_repo = SqlAlchemyVenueRepository(session)
    try:
        updated, previous = await call(
            venue_repo,
            SqlAlchemyBookingRepository(session),
            CacheViewInvalidator(view_cache, venue_repo),
        )
    except BookingError as exc:
        raise BookingHTTPException.from_error(exc)

    _audit(
        action=TRANSITION_ACTIONS[updated.status],
        initiator="staff",
        booking=updated,
        user_id=user_id,
        status_from=previous,
    )
    return ApiResult.ok(BookingRead.from_db(booking=updated, table=updated.table, game=updated.game))


@router.post("/bookings/{booking_id}/confirm", response_model=ApiResult[BookingRead])
async def confirm_booking(
    booking_id: int = Path(..., ge=1),
    session: AsyncSession = Depends(get_session),
    user_id: int = Depends(get_current_user_id),
) -> ApiResult[BookingRead]:
    return await _run_transition(
        session,
        user_id,
        lambda venues, bookings, inv: booking_usecase.confirm_booking(
            bookings, booking_id=booking_id, invalidator=inv
        ),
    )


@router.post("/bookings/{booking_id}/cancel", response_model=ApiResult[BookingRead])
async def cancel_booking(
    payload: BookingCancel,
    booking_id: int = Path(..., ge=1),
    session: AsyncSession = Depends(get_session),
    user_id: int = Depends(get_current_user_id),
) -> ApiResult[BookingRead]:
    return await _run_transition(
        session,
        user_id,
        lambda venues, bookings, inv: booking_usecase.cancel_booking(
            bookings,
            booking_id=booking_id,
            cancelled_by=payload.cancelled_by,
            reason=payload.reason,
            invalidator=inv,
        ),
    )


@router.post("/bookings/{booking_id}/arrive", response_model=ApiResult[BookingRead])
async def mark_arrived(
    booking_id: int = Path(..., ge=1),
    session: AsyncSession = Depends(get_session),
    user_id: int = Depends(get_current_user_id),
) -> ApiResult[BookingRead]:
    return await _run_transition(
        session,
        user_id,
        lambda venues, bookings, inv: booking_usecase.mark_arrived(bookings, booking_id=booking_id, invalidator=inv),
    )


@router.post("/bookings/{booking_id}/no-show", response_model=ApiResult[BookingRead])
async def mark_no_show(
    booking_id: int = Path(..., ge=1),
    session: AsyncSession = Depends(get_session),
    user_id: int = Depends(get_current_user_id),
) -> ApiResult[BookingRead]:
    return await _run_transition(
        session,
        user_id,
        lambda venues, bookings, inv: booking_usecase.mark_no_show(
            venues, bookings, booking_id=booking_id, invalidator=inv
        ),
    )


@router.post("/bookings/{booking_id}/seat", response_model=ApiResult[BookingRead])
async def seat_booking(
    booking_id: int = Path(..., ge=1),
    session: AsyncSession = Depends(get_session),
    user_id: int = Depends(get_current_user_id),
) -> ApiResult[BookingRead]:
    return await _run_transition(
        session,
        user_id,
        lambda venues, bookings, inv: booking_usecase.seat_booking(bookings, booking_id=booking_id, invalidator=inv),
    )


@router.post("/bookings/{booking_id}/complete", response_model=ApiResult[BookingRead])
async def complete_booking(
    booking_id: int = Path(..., ge=1),
    session: AsyncSession = Depends(get_session),
    user_id: int = Depends(get_current_user_id),
) -> ApiResult[BookingRead]:
    return await _run_transition(
        session,
        user_id,
        lambda venues, bookings, inv: booking_usecase.complete_booking(
            bookings, booking_id=booking_id, invalidator=inv
        ),
    )


@router.get("/venues/{venue_id}/bookings", response_model=ApiResult[list[BookingRead]])
async def list_venue_bookings(
    venue_id: int = Path(..., ge=1),
    day: date = Query(..., alias="date"),
    session: AsyncSession = Depends(get_session),
    user_id: int = Depends(get_current_user_id),
    settings: Settings = Depends(get_settings),
) -> ApiResult[list[BookingRead]]:
    key = f"{CacheKeys.ADMIN_BOOKINGS}:{venue_id}:{day.isoformat()}"
    cached = view_cache.get(key)
    if cached is not None:
        return cached

    try:
        bookings = await booking_usecase.list_venue_bookings(
            SqlAlchemyVenueRepository(session),
            SqlAlchemyBookingRepository(session),
            venue_id=venue_id,
            day=day,
        )
    except BookingError as exc:
        raise BookingHTTPException.from_error(exc)
    result = ApiResult.ok([BookingRead.from_db(booking=b, table=b.table, game=b.game) for b in bookings])
    view_cache.set(key, result, settings.view_cache_ttl_seconds)
    return result


@router.get("/venues/{venue_id}/availability", response_model=ApiResult[list[TableFitRead]])
async def list_available_tables(
    venue_id: int = Path(..., ge=1),
    day: date = Query(..., alias="date"),
    start_time: str = Query(...),
    end_time: Optional[str] = Query(default=None),
    duration_minutes: Optional[int] = Query(default=None),
    party_size: int = Query(..., ge=1),
    session: AsyncSession = Depends(get_session),
    settings: Settings = Depends(get_settings),
) -> ApiResult[list[TableFitRead]]:
    venue_repo = SqlAlchemyVenueRepository(session)
    try:
        policy = await booking_usecase.resolve_policy(venue_repo, venue_id)
        start, end = availability_usecase.resolve_interval(
            start_time,
            end_time=end_time,
            duration_minutes=duration_minutes,
            default_duration=policy.default_duration_minutes,
        )
    except BookingError as exc:
        raise BookingHTTPException.from_error(exc)

    venue = await venue_repo.get(venue_id)
    key = f"{CacheKeys.booking_page(venue.slug)}{day.isoformat()}:{start}:{end}:{party_size}"
    cached = view_cache.get(key)
    if cached is not None:
        return cached

    fits = await availability_usecase.list_available_tables(
        SqlAlchemyTableRepository(session),
        SqlAlchemyBookingRepository(session),
        venue_id=venue_id,
        booking_date=day,
        start_time=start,
        end_time=end,
        party_size=party_size,
    )
    result = ApiResult.ok([TableFitRead.from_result(fit) for fit in fits])
    view_cache.set(key, result, settings.view_cache_ttl_seconds)
    return result


@router.get("/venues/{venue_id}/slots", response_model=ApiResult[list[TimeSlotRead]])
async def list_available_slots(
    venue_id: int = Path(..., ge=1),
    day: date = Query(..., alias="date"),
    party_size: int = Query(..., ge=1),
    duration_minutes: Optional[int] = Query(default=None, ge=1),
    interval_minutes: int = Query(default=30, ge=5),
    session: AsyncSession = Depends(get_session),
) -> ApiResult[list[TimeSlotRead]]:
    venue_repo = SqlAlchemyVenueRepository(session)
    try:
        policy = await booking_usecase.resolve_policy(venue_repo, venue_id)
        slots = await availability_usecase.list_available_slots(
            venue_repo,
            SqlAlchemyTableRepository(session),
            SqlAlchemyBookingRepository(session),
            policy=policy,
            booking_date=day,
            party_size=party_size,
            duration_minutes=duration_minutes,
            interval_minutes=interval_minutes,
        )
    except BookingError as exc:
        raise BookingHTTPException.from_error(exc)
    return ApiResult.ok([TimeSlotRead.from_result(slot) for slot in slots])


@router.get("/tables/{table_id}/availability", response_model=ApiResult[TableAvailabilityRead])
async def table_availability(
    table_id: int = Path(..., ge=1),
    day: date = Query(..., alias="date"),
    start_time: str = Query(...),
    end_time: str = Query(...),
    session: AsyncSession = Depends(get_session),
) -> ApiResult[TableAvailabilityRead]:
    try:
        start, end = availability_usecase.resolve_interval(start_time, end_time=end_time)
    except BookingError as exc:
        raise BookingHTTPException.from_error(exc)
    result = await availability_usecase.check_table_availability(
        SqlAlchemyBookingRepository(session),
        table_id=table_id,
        booking_date=day,
        start_time=start,
        end_time=end,
    )
    return ApiResult.ok(TableAvailabilityRead.from_result(result))


@router.get("/games/{game_id}/availability", response_model=ApiResult[GameAvailabilityRead])
async def game_availability(
    game_id: int = Path(..., ge=1),
    day: date = Query(..., alias="date"),
    start_time: str = Query(...),
    end_time: str = Query(...),
    session: AsyncSession = Depends(get_session),
) -> ApiResult[GameAvailabilityRead]:
    try:
        start, end = availability_usecase.resolve_interval(start_time, end_time=end_time)
        result = await availability_usecase.check_game_availability(
            SqlAlchemyGameRepository(session),
            SqlAlchemyBookingRepository(session),
            game_id=game_id,
            booking_date=day,
            start_time=start,
            end_time=end,
        )
    except BookingError as exc:
        raise BookingHTTPException.from_error(exc)
    return ApiResult.ok(GameAvailabilityRead.from_result(result))
