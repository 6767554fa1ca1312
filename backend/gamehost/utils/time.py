from __future__ import annotations

import re
from datetime import date, datetime, time, timedelta, timezone
from zoneinfo import ZoneInfo

_DATE_RE = re.compile(r"^(\d{4})-(\d{2})-(\d{2})$")
_TIME_RE = re.compile(r"^([01]?\d|2[0-3]):[0-5]\d(:[0-5]\d)?$")

MINUTES_PER_DAY = 24 * 60


def utc_now_naive() -> datetime:
    return datetime.now(timezone.utc).replace(tzinfo=None)


def venue_now(tz_name: str) -> datetime:
    """Current wall-clock time in the venue's timezone."""
    return datetime.now(ZoneInfo(tz_name))


def parse_date(value: str) -> date | None:
    """Parse a strict YYYY-MM-DD string; returns None for malformed or impossible dates."""
    match = _DATE_RE.match(value)
    if match is None:
        return None
    year, month, day = (int(part) for part in match.groups())
    try:
        return date(year, month, day)
    except ValueError:
        return None


def is_valid_time(value: str) -> bool:
    return _TIME_RE.match(value) is not None


def normalize_time(value: str) -> str:
    """Normalize HH:MM or HH:MM:SS to zero-padded HH:MM."""
    parts = value.split(":")
    if len(parts) >= 2:
        return f"{parts[0].zfill(2)}:{parts[1].zfill(2)}"
    return value


def time_to_minutes(value: str) -> int:
    hours, minutes = value.split(":")[:2]
    return int(hours) * 60 + int(minutes)


def minutes_to_time(minutes: int) -> str:
    if minutes < 0 or minutes >= MINUTES_PER_DAY:
        raise ValueError(f"{minutes} minutes is outside a single day")
    return f"{minutes // 60:02d}:{minutes % 60:02d}"


def add_minutes_to_time(value: str, minutes: int) -> str:
    # No day rollover: an end time past midnight is a caller error.
    return minutes_to_time(time_to_minutes(value) + minutes)


def to_time(value: str) -> time:
    hours, minutes = normalize_time(value).split(":")
    return time(int(hours), int(minutes))


def format_time(value: time) -> str:
    return value.strftime("%H:%M")


def days_between(start: date, end: date) -> int:
    """Whole calendar days from `start` to `end`, ignoring time of day."""
    if isinstance(start, datetime):
        start = start.date()
    if isinstance(end, datetime):
        end = end.date()
    return (end - start).days


def intervals_overlap(start_a: int, end_a: int, start_b: int, end_b: int) -> bool:
    """Half-open overlap: [a) and [b) touching at an endpoint do not overlap."""
    return start_a < end_b and end_a > start_b


def overlap_minutes(start_a: datetime, end_a: datetime, start_b: datetime, end_b: datetime) -> int:
    if not (start_a < end_b and end_a > start_b):
        return 0
    overlap = min(end_a, end_b) - max(start_a, start_b)
    return round(overlap.total_seconds() / 60)


def combine(day: date, value: time | str) -> datetime:
    if isinstance(value, str):
        value = to_time(value)
    return datetime.combine(day, value)


def week_start(day: date) -> date:
    """Sunday on or before `day`."""
    # date.weekday(): Monday == 0 ... Sunday == 6
    return day - timedelta(days=(day.weekday() + 1) % 7)


def sunday_based_weekday(day: date) -> int:
    """0 == Sunday ... 6 == Saturday."""
    return (day.weekday() + 1) % 7


def month_bounds(year: int, month: int) -> tuple[date, date]:
    first = date(year, month, 1)
    if month == 12:
        next_first = date(year + 1, 1, 1)
    else:
        next_first = date(year, month + 1, 1)
    return first, next_first - timedelta(days=1)
