"""
Investment data service - the interface consumed by the dashboard layer.

Wires the query builder, aggregator, metadata cache, retry wrapper and
currency normalizer together. Each call opens its own session-scoped store;
the metadata cache is the only state shared between calls.

Retry policy (mirrors the dashboard's original behaviour):
- Page fetches and metadata refreshes are retried with exponential backoff
- Aggregations are not retried; their errors propagate on the first failure
"""

import asyncio
import logging
from contextlib import asynccontextmanager
from decimal import Decimal
from typing import Any, AsyncContextManager, AsyncIterator, Awaitable, Callable, List, Mapping, Optional, Union

from sqlalchemy.exc import SQLAlchemyError

from analytics.aggregator import Aggregator
from analytics.base import InvestmentStore
from analytics.currency import CurrencyNormalizer, Number
from analytics.metadata_cache import MetadataCache, get_metadata_cache, load_snapshot
from analytics.query_builder import InvestmentQueryBuilder
from analytics.store import SQLAlchemyInvestmentStore
from core.config import settings
from core.exceptions import InvestmentDataError
from core.retry import with_retries
from schemas.analytics import (
    AggregatedBucket,
    ConnectionStatus,
    InvestmentSummary,
    MetadataSnapshot,
    PageResponse,
)
from schemas.investment import InvestmentRecordResponse
from schemas.query import InvestmentFilters, PageQuery, validate_query

logger = logging.getLogger(__name__)

FilterInput = Union[InvestmentFilters, Mapping[str, Any], None]
StoreProvider = Callable[[], AsyncContextManager[InvestmentStore]]


class InvestmentDataService:
    """
    Facade over the query layer.

    Args:
        session_factory: async_sessionmaker used to open one session per call
            (defaults to core.database.async_session_maker)
        store_provider: Alternative to session_factory; zero-arg callable
            returning an async context manager that yields an InvestmentStore
        metadata_cache: Cache instance. Defaults to the process-wide cache, which
            keeps the refresh callable of the first service that created it; a
            service with its own session_factory or store_provider needs its own
            cache to refresh metadata through them
        normalizer: Currency normalizer (defaults to the configured APBN table)
        max_retries: Attempts for page fetches and metadata refreshes
        retry_base_delay: First backoff in seconds
        sleep: Awaitable sleep used between attempts
        cursor_lookahead: Fetch page_size + 1 rows in cursor mode
    """

    def __init__(
        self,
        session_factory=None,
        store_provider: Optional[StoreProvider] = None,
        metadata_cache: Optional[MetadataCache] = None,
        normalizer: Optional[CurrencyNormalizer] = None,
        max_retries: Optional[int] = None,
        retry_base_delay: Optional[float] = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
        cursor_lookahead: Optional[bool] = None
    ):
        if store_provider is None:
            if session_factory is None:
                from core.database import async_session_maker
                session_factory = async_session_maker
            self.session_factory = session_factory
            store_provider = self._session_store
        else:
            self.session_factory = session_factory

        self.store_provider = store_provider
        self.normalizer = normalizer or CurrencyNormalizer()
        self.max_retries = settings.MAX_RETRIES if max_retries is None else max_retries
        self.retry_base_delay = settings.RETRY_BASE_DELAY_SECONDS if retry_base_delay is None else retry_base_delay
        self.sleep = sleep
        self.cursor_lookahead = cursor_lookahead
        self.metadata_cache = metadata_cache or get_metadata_cache(self.refresh_metadata)

    @asynccontextmanager
    async def _session_store(self) -> AsyncIterator[InvestmentStore]:
        async with self.session_factory() as session:
            yield SQLAlchemyInvestmentStore(session)

    async def _retried(self, operation, operation_name: str):
        return await with_retries(
            operation,
            max_attempts=self.max_retries,
            base_delay=self.retry_base_delay,
            sleep=self.sleep,
            operation_name=operation_name
        )

    # ------------------------------------------------------------------
    # Pages
    # ------------------------------------------------------------------

    async def fetch_page(self, params: Union[PageQuery, Mapping[str, Any], None] = None) -> PageResponse:
        """
        One page of records, offset or cursor mode, with retries.

        Raises:
            InvalidQueryError: Bad parameters (not retried)
            RetriesExhaustedError: Every attempt failed with a transient error
        """
        query = validate_query(PageQuery, params)

        async def attempt() -> PageResponse:
            async with self.store_provider() as store:
                builder = InvestmentQueryBuilder(store, cursor_lookahead=self.cursor_lookahead)
                return await builder.fetch_page(query)

        return await self._retried(attempt, "fetch_page")

    async def fetch_all(
        self,
        filters: FilterInput = None,
        batch_size: Optional[int] = None,
        sort_by: str = "year",
        sort_order: str = "desc",
        progress_callback: Optional[Callable[[int, int], None]] = None
    ) -> List[InvestmentRecordResponse]:
        """
        Every matching record, fetched page by page (for exports).

        ``progress_callback(loaded, total)`` is called after each page.
        """
        filter_set = validate_query(InvestmentFilters, filters)
        page_size = batch_size or settings.FETCH_ALL_BATCH_SIZE

        def page_query(page: int) -> PageQuery:
            return validate_query(PageQuery, {
                **filter_set.active(),
                "page": page,
                "page_size": page_size,
                "sort_by": sort_by,
                "sort_order": sort_order,
            })

        first = await self.fetch_page(page_query(1))
        total = first.pagination.total
        records = list(first.data)

        if progress_callback:
            progress_callback(len(records), total)

        for page in range(2, first.pagination.total_pages + 1):
            batch = await self.fetch_page(page_query(page))
            records.extend(batch.data)

            if progress_callback:
                progress_callback(len(records), total)

        logger.info(f"Fetched {len(records)} of {total} records in batches of {page_size}")
        return records

    # ------------------------------------------------------------------
    # Aggregations (not retried)
    # ------------------------------------------------------------------

    async def fetch_aggregate(self, group_by: str, filters: FilterInput = None) -> List[AggregatedBucket]:
        async with self.store_provider() as store:
            return await Aggregator(store).aggregate(group_by, filters)

    async def yearly_trend(self, filters: FilterInput = None) -> List[AggregatedBucket]:
        async with self.store_provider() as store:
            return await Aggregator(store).yearly_trend(filters)

    async def sector_time_series(self, sector: str) -> List[AggregatedBucket]:
        async with self.store_provider() as store:
            return await Aggregator(store).sector_time_series(sector)

    async def region_time_series(self, region: str) -> List[AggregatedBucket]:
        async with self.store_provider() as store:
            return await Aggregator(store).region_time_series(region)

    async def summary_statistics(self, filters: FilterInput = None) -> InvestmentSummary:
        async with self.store_provider() as store:
            return await Aggregator(store).summary(filters)

    async def combined_total(self, filters: FilterInput = None) -> Decimal:
        """PMDN + PMA (converted per year) in million IDR over the filtered set"""
        return self.normalizer.combined_total(await self.yearly_trend(filters))

    # ------------------------------------------------------------------
    # Metadata
    # ------------------------------------------------------------------

    async def refresh_metadata(self) -> MetadataSnapshot:
        """Load a fresh snapshot with retries (the cache's refresh callable)"""
        async def attempt() -> MetadataSnapshot:
            async with self.store_provider() as store:
                return await load_snapshot(store)

        return await self._retried(attempt, "refresh_metadata")

    async def fetch_metadata(self) -> MetadataSnapshot:
        return await self.metadata_cache.get_metadata()

    # ------------------------------------------------------------------
    # Currency
    # ------------------------------------------------------------------

    def to_domestic(self, amount: Number, year: int) -> Decimal:
        return self.normalizer.to_domestic(amount, year)

    # ------------------------------------------------------------------
    # Health
    # ------------------------------------------------------------------

    async def check_connection(self) -> ConnectionStatus:
        """Single SELECT 1 probe; failures are reported, not raised"""
        logger.info("Checking database connection...")
        try:
            async with self.store_provider() as store:
                await store.ping()
        except (InvestmentDataError, SQLAlchemyError, OSError) as e:
            logger.error(f"Database connection error: {e}")
            return ConnectionStatus(success=False, error=str(e))

        logger.info("Database connection successful")
        return ConnectionStatus(success=True)
