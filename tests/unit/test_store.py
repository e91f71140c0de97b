"""
Unit tests for the SQLAlchemy store
"""

import asyncio
import pytest
from decimal import Decimal
from unittest.mock import AsyncMock, MagicMock
from sqlalchemy.exc import InterfaceError, OperationalError, ProgrammingError
from analytics.base import PageWindow, SortSpec
from analytics.store import SQLAlchemyInvestmentStore
from core.exceptions import InvalidQueryError, TransientFetchError
from models.base import InvestmentStatus
from schemas.query import InvestmentFilters


def session_returning(result) -> AsyncMock:
    mock_session = AsyncMock()
    mock_session.execute = AsyncMock(return_value=result)
    return mock_session


class TestErrorMapping:
    """Test translation of driver failures"""

    @pytest.mark.asyncio
    @pytest.mark.parametrize("error", [
        OperationalError("SELECT 1", {}, Exception("connection refused")),
        InterfaceError("SELECT 1", {}, Exception("connection is closed")),
        ConnectionRefusedError("Connection refused"),
        asyncio.TimeoutError(),
    ])
    async def test_connection_failures_are_transient(self, error):
        mock_session = AsyncMock()
        mock_session.execute = AsyncMock(side_effect=error)
        store = SQLAlchemyInvestmentStore(mock_session)

        with pytest.raises(TransientFetchError) as exc_info:
            await store.count(InvestmentFilters())

        assert exc_info.value.original_exception is error
        assert exc_info.value.context["operation"] == "count"
        assert exc_info.value.context["table_name"] == "investment_data"

    @pytest.mark.asyncio
    async def test_invalidated_connection_is_transient(self):
        error = ProgrammingError("SELECT 1", {}, Exception("gone"), connection_invalidated=True)
        mock_session = AsyncMock()
        mock_session.execute = AsyncMock(side_effect=error)

        with pytest.raises(TransientFetchError):
            await SQLAlchemyInvestmentStore(mock_session).ping()

    @pytest.mark.asyncio
    async def test_query_errors_propagate_unchanged(self):
        error = ProgrammingError("SELECT nope", {}, Exception("column does not exist"))
        mock_session = AsyncMock()
        mock_session.execute = AsyncMock(side_effect=error)

        with pytest.raises(ProgrammingError):
            await SQLAlchemyInvestmentStore(mock_session).count(InvestmentFilters())


class TestReads:
    """Test result handling"""

    @pytest.mark.asyncio
    async def test_query_returns_scalars(self, sample_records):
        result = MagicMock()
        result.scalars.return_value.all.return_value = sample_records[:2]
        mock_session = session_returning(result)

        rows = await SQLAlchemyInvestmentStore(mock_session).query(
            InvestmentFilters(year=2023),
            SortSpec(field="year"),
            PageWindow(limit=2)
        )

        assert [r.id for r in rows] == [1, 2]
        mock_session.execute.assert_called_once()

    @pytest.mark.asyncio
    async def test_count_defaults_to_zero(self):
        result = MagicMock()
        result.scalar.return_value = None

        assert await SQLAlchemyInvestmentStore(session_returning(result)).count(InvestmentFilters()) == 0

    @pytest.mark.asyncio
    async def test_aggregate_rows(self):
        result = MagicMock()
        result.mappings.return_value.all.return_value = [
            {"key": InvestmentStatus.FOREIGN, "count": 3, "domestic_sum": Decimal("0"), "foreign_sum": Decimal("2150")},
            {"key": InvestmentStatus.DOMESTIC, "count": 4, "domestic_sum": Decimal("1150"), "foreign_sum": Decimal("0")},
        ]

        rows = await SQLAlchemyInvestmentStore(session_returning(result)).aggregate("status", InvestmentFilters())

        assert [(r.key, r.count) for r in rows] == [(InvestmentStatus.FOREIGN, 3), (InvestmentStatus.DOMESTIC, 4)]
        assert rows[0].foreign_sum == Decimal("2150")

    @pytest.mark.asyncio
    async def test_distinct_values(self):
        result = MagicMock()
        result.scalars.return_value.all.return_value = [2023, 2022]

        values = await SQLAlchemyInvestmentStore(session_returning(result)).distinct_values("Tahun")

        assert values == [2023, 2022]

    @pytest.mark.asyncio
    async def test_distinct_values_rejects_unknown_field(self):
        mock_session = AsyncMock()

        with pytest.raises(InvalidQueryError):
            await SQLAlchemyInvestmentStore(mock_session).distinct_values("InvestasiRpJuta")

        mock_session.execute.assert_not_called()

    @pytest.mark.asyncio
    async def test_amount_range(self):
        result = MagicMock()
        result.one.return_value = (Decimal("100"), Decimal("500"))

        assert await SQLAlchemyInvestmentStore(session_returning(result)).amount_range() == (
            Decimal("100"), Decimal("500")
        )
