from datetime import date
from typing import Annotated, Literal, Optional, Union

from fastapi import APIRouter, Depends, Path, Query
from pydantic import Field
from sqlalchemy.ext.asyncio import AsyncSession

from ..config import Settings, get_settings
from ..deps import get_current_user_id, get_session
from ..domain.errors import BookingError, BookingValidationError
from ..infrastructure.repositories import (
    SqlAlchemyBookingRepository,
    SqlAlchemyTableRepository,
    SqlAlchemyVenueRepository,
)
from ..schemas import ApiResult, DayViewRead, MonthViewRead, WeekViewRead
from ..usecases import timeline as timeline_usecase
from ..utils.cache import CacheKeys, view_cache
from .errors import BookingHTTPException

router = APIRouter(prefix="/venues", tags=["timeline"])

CalendarRead = Annotated[Union[DayViewRead, WeekViewRead, MonthViewRead], Field(discriminator="view")]


async def _load_view(
    session: AsyncSession,
    *,
    venue_id: int,
    view: str,
    day: Optional[date],
    year: Optional[int],
    month: Optional[int],
) -> CalendarRead:
    venue_repo = SqlAlchemyVenueRepository(session)
    booking_repo = SqlAlchemyBookingRepository(session)
    if view == "month":
        if year is None or month is None:
            if day is None:
                raise BookingValidationError("Month view requires year and month or a date")
            year, month = day.year, day.month
        result = await timeline_usecase.get_month_view(
            venue_repo, booking_repo, venue_id=venue_id, year=year, month=month
        )
        return MonthViewRead.from_view(result)

    if day is None:
        raise BookingValidationError("Booking date is required")
    table_repo = SqlAlchemyTableRepository(session)
    if view == "week":
        week = await timeline_usecase.get_week_view(
            venue_repo, table_repo, booking_repo, venue_id=venue_id, day=day
        )
        return WeekViewRead.from_view(week)
    day_view = await timeline_usecase.get_day_view(venue_repo, table_repo, booking_repo, venue_id=venue_id, day=day)
    return DayViewRead.from_view(day_view)


@router.get("/{venue_id}/calendar", response_model=ApiResult[CalendarRead])
async def get_calendar(
    venue_id: int = Path(..., ge=1),
    view: Literal["day", "week", "month"] = Query(default="day"),
    day: Optional[date] = Query(default=None, alias="date"),
    year: Optional[int] = Query(default=None, ge=1970, le=9999),
    month: Optional[int] = Query(default=None, ge=1, le=12),
    session: AsyncSession = Depends(get_session),
    user_id: int = Depends(get_current_user_id),
    settings: Settings = Depends(get_settings),
) -> ApiResult[CalendarRead]:
    key = CacheKeys.calendar(venue_id, view, day, year, month)
    cached = view_cache.get(key)
    if cached is not None:
        return cached

    try:
        data = await _load_view(session, venue_id=venue_id, view=view, day=day, year=year, month=month)
    except BookingError as exc:
        raise BookingHTTPException.from_error(exc)
    result: ApiResult[CalendarRead] = ApiResult.ok(data)
    view_cache.set(key, result, settings.view_cache_ttl_seconds)
    return result
