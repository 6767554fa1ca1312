from __future__ import annotations

import logging

from ..domain.repositories import VenueRepository, ViewInvalidator
from ..utils.cache import CacheKeys, ViewCache

logger = logging.getLogger(__name__)


class CacheViewInvalidator(ViewInvalidator):
    """Drops every cached view a booking write can change for one venue."""

    def __init__(self, cache: ViewCache, venue_repo: VenueRepository) -> None:
        self.cache = cache
        self.venue_repo = venue_repo

    async def invalidate_booking_views(self, venue_id: int) -> None:
        self.cache.clear_prefix(f"{CacheKeys.ADMIN_BOOKINGS}:{venue_id}:")
        self.cache.clear_prefix(f"{CacheKeys.ADMIN_SESSIONS}:{venue_id}:")
        self.cache.clear_prefix(CacheKeys.calendar(venue_id))
        venue = await self.venue_repo.get(venue_id)
        if venue is not None:
            self.cache.clear_prefix(CacheKeys.booking_page(venue.slug))
        logger.debug("invalidated booking views for venue %s", venue_id)
