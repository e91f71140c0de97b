"""
Group-by aggregation with two parallel currency tracks.

Per bucket:
    count        = matching rows
    domestic_sum = SUM(domestic_amount) over PMDN rows (million IDR)
    foreign_sum  = SUM(foreign_amount) over PMA rows (thousand USD)

Buckets exist only for key values present in the filtered set and come back
ordered by key ascending, NULL key last. Store failures propagate as-is: no
partial aggregation and no retries at this layer.
"""

import logging
from decimal import Decimal
from typing import Any, List, Mapping, Union

from sqlalchemy import Select, and_, case, func, literal, select

from analytics.base import AggregateRow, InvestmentStore
from analytics.query_builder import build_filter_conditions
from models.base import InvestmentStatus
from models.investment import InvestmentRecord
from schemas.analytics import AggregatedBucket, InvestmentSummary
from schemas.query import GROUPABLE_FIELDS, InvestmentFilters, canonical_field, validate_query

logger = logging.getLogger(__name__)

ZERO = Decimal("0")


def build_aggregate_statement(group_by: str, filters: InvestmentFilters) -> Select:
    """GROUP BY statement returning (key, count, domestic_sum, foreign_sum)"""
    key_column = getattr(InvestmentRecord, canonical_field(group_by, GROUPABLE_FIELDS, "group_by"))

    domestic_sum = func.sum(
        case(
            (InvestmentRecord.status == InvestmentStatus.DOMESTIC, InvestmentRecord.domestic_amount),
            else_=literal(0, InvestmentRecord.domestic_amount.type)
        )
    )
    foreign_sum = func.sum(
        case(
            (InvestmentRecord.status == InvestmentStatus.FOREIGN, InvestmentRecord.foreign_amount),
            else_=literal(0, InvestmentRecord.foreign_amount.type)
        )
    )

    query = select(
        key_column.label("key"),
        func.count().label("count"),
        domestic_sum.label("domestic_sum"),
        foreign_sum.label("foreign_sum"),
    )

    conditions = build_filter_conditions(filters)
    if conditions:
        query = query.where(and_(*conditions))

    return query.group_by(key_column).order_by(key_column.asc().nulls_last())


def build_averages_statement(filters: InvestmentFilters) -> Select:
    query = select(
        func.count().label("record_count"),
        func.avg(InvestmentRecord.domestic_amount).label("avg_domestic_amount"),
        func.avg(InvestmentRecord.foreign_amount).label("avg_foreign_amount"),
        func.percentile_cont(0.5).within_group(InvestmentRecord.domestic_amount).label("median_domestic_amount"),
        func.percentile_cont(0.5).within_group(InvestmentRecord.foreign_amount).label("median_foreign_amount"),
        func.avg(InvestmentRecord.projects).label("avg_projects"),
        func.avg(InvestmentRecord.domestic_workers).label("avg_domestic_workers"),
        func.avg(InvestmentRecord.foreign_workers).label("avg_foreign_workers"),
    )
    conditions = build_filter_conditions(filters)
    if conditions:
        query = query.where(and_(*conditions))
    return query


def to_decimal(value: Any) -> Decimal:
    """Exact Decimal for a SUM result (None for an all-NULL group)"""
    if value is None:
        return ZERO
    if isinstance(value, Decimal):
        return value
    return Decimal(str(value))


def _bucket_key(key: Any) -> Union[int, str, None]:
    if isinstance(key, InvestmentStatus):
        return key.value
    return key


class Aggregator:
    """
    Aggregation queries for charts.

    Yearly trend and single-sector/region time series are plain aggregations
    grouped by year with (at most) one fixed equality filter.
    """

    def __init__(self, store: InvestmentStore):
        self.store = store

    async def aggregate(
        self,
        group_by: str,
        filters: Union[InvestmentFilters, Mapping[str, Any], None] = None
    ) -> List[AggregatedBucket]:
        """
        Aggregate the filtered set by ``group_by``.

        Args:
            group_by: year, sector, region, status, province or country
                (ORM attribute or reference column name)
            filters: InvestmentFilters or a mapping of raw filter values

        Raises:
            InvalidQueryError: Unknown dimension or malformed filter
        """
        dimension = canonical_field(group_by, GROUPABLE_FIELDS, "group_by")
        filter_set = validate_query(InvestmentFilters, filters)

        logger.info(f"Aggregating by {dimension}, filters={filter_set.active()}")

        rows = await self.store.aggregate(dimension, filter_set)
        buckets = [self._to_bucket(row) for row in rows if row.count > 0]

        logger.info(f"Aggregated {total_count(buckets)} records into {len(buckets)} buckets")
        return buckets

    async def yearly_trend(
        self,
        filters: Union[InvestmentFilters, Mapping[str, Any], None] = None
    ) -> List[AggregatedBucket]:
        """Buckets per year over the filtered set"""
        return await self.aggregate("year", filters)

    async def sector_time_series(self, sector: str) -> List[AggregatedBucket]:
        """Buckets per year for one sector"""
        return await self.aggregate("year", {"sector": sector})

    async def region_time_series(self, region: str) -> List[AggregatedBucket]:
        """Buckets per year for one region"""
        return await self.aggregate("year", {"region": region})

    async def summary(
        self,
        filters: Union[InvestmentFilters, Mapping[str, Any], None] = None
    ) -> InvestmentSummary:
        """Averages and medians over the filtered set"""
        filter_set = validate_query(InvestmentFilters, filters)
        values = await self.store.averages(filter_set)
        return InvestmentSummary(
            record_count=values.get("record_count") or 0,
            **{
                name: (to_decimal(value) if value is not None else None)
                for name, value in values.items()
                if name != "record_count"
            }
        )

    @staticmethod
    def _to_bucket(row: AggregateRow) -> AggregatedBucket:
        return AggregatedBucket(
            key=_bucket_key(row.key),
            count=row.count,
            domestic_sum=to_decimal(row.domestic_sum),
            foreign_sum=to_decimal(row.foreign_sum),
        )


def total_count(buckets: List[AggregatedBucket]) -> int:
    """Sum of bucket counts; equals the filtered row count"""
    return sum(bucket.count for bucket in buckets)

