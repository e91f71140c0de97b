"""
SQLAlchemy (async) implementation of the investment data store
"""

import asyncio
import logging
from decimal import Decimal
from typing import Any, Dict, List, Optional, Tuple

from sqlalchemy import func, select, text
from sqlalchemy.exc import DBAPIError, InterfaceError, OperationalError
from sqlalchemy.ext.asyncio import AsyncSession

from analytics.aggregator import build_aggregate_statement, build_averages_statement
from analytics.base import AggregateRow, InvestmentStore, PageWindow, SortSpec
from analytics.query_builder import build_count_statement, build_page_statement
from core.exceptions import TransientFetchError
from models.investment import InvestmentRecord
from schemas.query import DISTINCT_FIELDS, InvestmentFilters, canonical_field

logger = logging.getLogger(__name__)


class SQLAlchemyInvestmentStore(InvestmentStore):
    """
    Reads the ``investment_data`` table through an AsyncSession.

    Connection-level failures (operational/interface errors, invalidated
    connections, socket errors, timeouts) are raised as TransientFetchError
    with the driver error attached. Everything else propagates unchanged.
    """

    def __init__(self, db_session: AsyncSession):
        self.db = db_session

    async def _execute(self, statement, operation: str):
        try:
            return await self.db.execute(statement)

        except DBAPIError as e:
            if isinstance(e, (OperationalError, InterfaceError)) or e.connection_invalidated:
                raise TransientFetchError(
                    f"Database {operation} failed",
                    context={"operation": operation, "table_name": InvestmentRecord.__tablename__},
                    original_exception=e
                )
            raise

        except (OSError, asyncio.TimeoutError) as e:
            raise TransientFetchError(
                f"Database {operation} failed",
                context={"operation": operation, "table_name": InvestmentRecord.__tablename__},
                original_exception=e
            )

    async def query(
        self,
        filters: InvestmentFilters,
        sort: SortSpec,
        window: PageWindow
    ) -> List[InvestmentRecord]:
        statement = build_page_statement(filters, sort, window)
        logger.debug(f"Executing data query: {statement}")
        result = await self._execute(statement, "query")
        rows = list(result.scalars().all())
        logger.debug(f"Retrieved {len(rows)} records")
        return rows

    async def count(self, filters: InvestmentFilters) -> int:
        result = await self._execute(build_count_statement(filters), "count")
        return result.scalar() or 0

    async def distinct_values(self, field: str) -> List[Any]:
        name = canonical_field(field, DISTINCT_FIELDS, "field")
        column = getattr(InvestmentRecord, name)
        order = column.desc() if name == "year" else column.asc()

        statement = select(column).distinct().where(column.isnot(None)).order_by(order)
        result = await self._execute(statement, f"distinct:{field}")
        return list(result.scalars().all())

    async def aggregate(self, group_by: str, filters: InvestmentFilters) -> List[AggregateRow]:
        result = await self._execute(build_aggregate_statement(group_by, filters), f"aggregate:{group_by}")
        return [
            AggregateRow(
                key=row["key"],
                count=row["count"],
                domestic_sum=row["domestic_sum"],
                foreign_sum=row["foreign_sum"],
            )
            for row in result.mappings().all()
        ]

    async def amount_range(self) -> Tuple[Optional[Decimal], Optional[Decimal]]:
        statement = select(
            func.min(InvestmentRecord.domestic_amount),
            func.max(InvestmentRecord.domestic_amount),
        ).where(InvestmentRecord.domestic_amount > 0)

        result = await self._execute(statement, "amount_range")
        minimum, maximum = result.one()
        return minimum, maximum

    async def averages(self, filters: InvestmentFilters) -> Dict[str, Any]:
        result = await self._execute(build_averages_statement(filters), "averages")
        return dict(result.mappings().one())

    async def ping(self) -> None:
        await self._execute(text("SELECT 1 AS connection_test"), "ping")
