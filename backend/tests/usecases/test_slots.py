from datetime import date, datetime, time

import pytest
from gamehost.domain.errors import BookingValidationError
from gamehost.domain.policy import VenuePolicy
from gamehost.usecases import availability as uc

# Tuesday; day_of_week 2 with Sunday as 0.
DAY = date(2026, 3, 3)
DAY_BEFORE = datetime(2026, 3, 2, 10, 0)
POLICY = VenuePolicy(venue_id=1, min_booking_notice_hours=1, default_duration_minutes=120)


@pytest.fixture
def venue(repos):
    repos.store.add_venue(1)
    repos.store.add_hours(1, 2, time(10, 0), time(22, 0))
    repos.store.add_table(1, label="A1", capacity=4)
    return repos


async def _slots(repos, **kwargs):
    kwargs.setdefault("policy", POLICY)
    kwargs.setdefault("booking_date", DAY)
    kwargs.setdefault("party_size", 2)
    kwargs.setdefault("now", DAY_BEFORE)
    return await uc.list_available_slots(repos.venues, repos.tables, repos.bookings, **kwargs)


@pytest.mark.asyncio
async def test_slots_step_through_opening_hours(venue) -> None:
    slots = await _slots(venue)

    assert (slots[0].start_time, slots[0].end_time) == ("10:00", "12:00")
    assert (slots[-1].start_time, slots[-1].end_time) == ("20:00", "22:00")
    assert len(slots) == 21
    assert all(slot.is_available for slot in slots)


@pytest.mark.asyncio
async def test_slot_running_past_closing_is_left_out(venue) -> None:
    slots = await _slots(venue, interval_minutes=60)

    starts = [slot.start_time for slot in slots]
    assert "20:00" in starts
    assert "21:00" not in starts


@pytest.mark.asyncio
async def test_today_hides_slots_inside_notice_window(venue) -> None:
    slots = await _slots(venue, now=datetime(2026, 3, 3, 15, 0))

    assert slots[0].start_time == "16:00"
    assert all(slot.start_time >= "16:00" for slot in slots)


@pytest.mark.asyncio
async def test_notice_window_rounds_up_to_next_interval(venue) -> None:
    slots = await _slots(venue, now=datetime(2026, 3, 3, 15, 10))

    assert slots[0].start_time == "16:30"


@pytest.mark.asyncio
async def test_past_day_has_no_slots(venue) -> None:
    assert await _slots(venue, now=datetime(2026, 3, 4, 9, 0)) == []


@pytest.mark.asyncio
async def test_large_party_sees_only_unavailable_slots(venue) -> None:
    slots = await _slots(venue, party_size=6)

    assert slots
    assert not any(slot.is_available for slot in slots)
    assert all(slot.tables == [] for slot in slots)


@pytest.mark.asyncio
async def test_slot_lists_only_tables_free_for_the_whole_slot(venue) -> None:
    venue.store.add_table(2, label="B2", capacity=2)
    venue.store.add_booking(table_id=1, booking_date=DAY, start="18:00", end="20:00")

    slots = {slot.start_time: slot for slot in await _slots(venue)}

    assert [fit.table.label for fit in slots["17:00"].tables] == ["B2"]
    assert [fit.table.label for fit in slots["20:00"].tables] == ["B2", "A1"]
    assert [fit.table.label for fit in slots["15:30"].tables] == ["B2", "A1"]


@pytest.mark.asyncio
async def test_duration_defaults_to_policy_and_can_be_overridden(venue) -> None:
    short = await _slots(venue, duration_minutes=60)
    default = await _slots(venue, policy=VenuePolicy(venue_id=1, default_duration_minutes=90))

    assert (short[-1].start_time, short[-1].end_time) == ("21:00", "22:00")
    assert (default[-1].start_time, default[-1].end_time) == ("20:30", "22:00")


@pytest.mark.asyncio
async def test_closed_day_uses_default_hours(venue) -> None:
    venue.store.add_hours(1, 2, time(10, 0), time(22, 0), closed=True)

    slots = await _slots(venue)

    assert slots[0].start_time == "09:00"
    assert slots[-1].end_time == "23:00"


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "kwargs, message",
    [
        ({"interval_minutes": 0}, "Slot interval must be a positive whole number of minutes"),
        ({"duration_minutes": -30}, "Duration must be a positive whole number of minutes"),
        ({"party_size": 0}, "Party size must be at least 1"),
    ],
)
async def test_rejects_bad_slot_queries(venue, kwargs: dict, message: str) -> None:
    with pytest.raises(BookingValidationError) as excinfo:
        await _slots(venue, **kwargs)

    assert excinfo.value.message == message
