"""
Process-wide, TTL-bounded cache of filter metadata.

Lifecycle:
    empty -> first get_metadata() refreshes -> fresh until expires_at
    -> next call after expiry refreshes again (snapshot replaced wholesale)

If a refresh fails and a previous snapshot exists it is served stale and a
StaleDataServed event is logged; the error only propagates when nothing has
ever been cached. Concurrent callers on a miss may each refresh (no
single-flight); the last successful refresh wins, which only wastes work.
"""

import logging
import time
from typing import Awaitable, Callable, Optional

from analytics.base import InvestmentStore
from core.config import settings
from core.exceptions import StaleDataServed
from models.base import InvestmentStatus
from schemas.analytics import MetadataSnapshot
from schemas.query import InvestmentFilters

logger = logging.getLogger(__name__)


async def load_snapshot(store: InvestmentStore) -> MetadataSnapshot:
    """Distinct-value scan per categorical field, total count and amount range"""
    years = await store.distinct_values("year")
    sectors = await store.distinct_values("sector")
    regions = await store.distinct_values("region")
    provinces = await store.distinct_values("province")
    statuses = await store.distinct_values("status")
    countries = await store.distinct_values("country")
    total_records = await store.count(InvestmentFilters())
    minimum, maximum = await store.amount_range()

    return MetadataSnapshot(
        years=years,
        sectors=sectors,
        regions=regions,
        provinces=provinces,
        statuses=[s.value if isinstance(s, InvestmentStatus) else s for s in statuses],
        countries=countries,
        total_records=total_records,
        investment_range=(minimum, maximum),
    )


class MetadataCache:
    """
    Single-slot snapshot cache with a fixed time-to-live.

    Args:
        refresh: Coroutine factory producing a fresh MetadataSnapshot
        ttl_seconds: Lifetime of a snapshot (defaults to settings.METADATA_CACHE_TTL_SECONDS)
        clock: Monotonic clock in seconds, injectable for tests
    """

    def __init__(
        self,
        refresh: Callable[[], Awaitable[MetadataSnapshot]],
        ttl_seconds: Optional[float] = None,
        clock: Callable[[], float] = time.monotonic
    ):
        self.refresh = refresh
        self.ttl_seconds = settings.METADATA_CACHE_TTL_SECONDS if ttl_seconds is None else ttl_seconds
        self.clock = clock

        self._snapshot: Optional[MetadataSnapshot] = None
        self._expires_at: float = float("-inf")
        self._refreshed_at: Optional[float] = None
        self.last_stale_event: Optional[StaleDataServed] = None

    @property
    def snapshot(self) -> Optional[MetadataSnapshot]:
        return self._snapshot

    @property
    def expires_at(self) -> float:
        return self._expires_at

    def is_fresh(self) -> bool:
        return self._snapshot is not None and self.clock() < self._expires_at

    async def get_metadata(self) -> MetadataSnapshot:
        """
        Return the cached snapshot, refreshing it when missing or expired.

        Raises:
            Exception: Whatever the refresh raised, only when no snapshot was ever cached
        """
        now = self.clock()

        if self._snapshot is not None and now < self._expires_at:
            logger.debug("Using cached metadata")
            return self._snapshot

        logger.info("Fetching fresh metadata")
        try:
            snapshot = await self.refresh()

        except Exception as e:
            logger.error(f"Error fetching metadata: {e}")

            if self._snapshot is None:
                raise

            age = now - self._refreshed_at if self._refreshed_at is not None else None
            event = StaleDataServed(
                "Serving stale metadata after failed refresh",
                context={
                    "snapshot_age_seconds": round(age, 3) if age is not None else None,
                    "snapshot_last_updated": self._snapshot.last_updated.isoformat(),
                },
                original_exception=e
            )
            self.last_stale_event = event
            logger.warning(str(event), extra={"error_context": event.to_dict()})
            return self._snapshot

        # Whole-snapshot swap, never a merge
        self._snapshot = snapshot
        self._refreshed_at = now
        self._expires_at = now + self.ttl_seconds
        return snapshot

    def invalidate(self) -> None:
        """Force the next get_metadata() to refresh (the snapshot stays as stale fallback)"""
        self._expires_at = float("-inf")


_metadata_cache: Optional[MetadataCache] = None


def get_metadata_cache(refresh: Optional[Callable[[], Awaitable[MetadataSnapshot]]] = None) -> MetadataCache:
    """
    Process-wide metadata cache.

    Created on first use with ``refresh``; later calls return the same
    instance and ignore the argument (a different callable is logged as a
    warning, the first one keeps refreshing).
    """
    global _metadata_cache
    if _metadata_cache is None:
        if refresh is None:
            raise RuntimeError("The process-wide metadata cache needs a refresh callable on first use")
        _metadata_cache = MetadataCache(refresh)
    elif refresh is not None and refresh != _metadata_cache.refresh:
        logger.warning(
            "Process-wide metadata cache already exists; ignoring the new refresh callable. "
            "Pass metadata_cache= to use a separate cache."
        )
    return _metadata_cache


def reset_metadata_cache() -> None:
    """Drop the process-wide instance (used between tests)"""
    global _metadata_cache
    _metadata_cache = None
