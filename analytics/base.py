"""
Abstract data store interface consumed by the query layer
"""

from abc import ABC, abstractmethod
from decimal import Decimal
from pydantic import BaseModel
from typing import Any, List, Optional, Tuple
from models.investment import InvestmentRecord
from schemas.query import InvestmentFilters
import logging

logger = logging.getLogger(__name__)


class SortSpec(BaseModel):
    """Single-key ordering; ties among equal keys have no defined order"""
    field: str
    descending: bool = True


class CursorBoundary(BaseModel):
    """Strict keyset predicate: ``field < value`` when descending, ``field > value`` otherwise"""
    field: str
    value: Any
    descending: bool = True

    @property
    def operator(self) -> str:
        return "<" if self.descending else ">"


class PageWindow(BaseModel):
    """Row window for one page read"""
    limit: int
    offset: int = 0
    boundary: Optional[CursorBoundary] = None


class AggregateRow(BaseModel):
    """Raw grouped row as returned by the store"""
    key: Any
    count: int
    domestic_sum: Optional[Decimal] = None
    foreign_sum: Optional[Decimal] = None


class InvestmentStore(ABC):
    """
    Tabular data store over the single ``investment_data`` table.

    Implementations translate connection-level failures into
    core.exceptions.TransientFetchError so the retry wrapper can tell them
    apart from bad queries.
    """

    @abstractmethod
    async def query(
        self,
        filters: InvestmentFilters,
        sort: SortSpec,
        window: PageWindow
    ) -> List[InvestmentRecord]:
        """Filtered, sorted rows inside ``window``"""
        pass

    @abstractmethod
    async def count(self, filters: InvestmentFilters) -> int:
        """Number of rows matching ``filters``"""
        pass

    @abstractmethod
    async def distinct_values(self, field: str) -> List[Any]:
        """
        Distinct non-null values of ``field``.

        Years are returned newest first, every other field ascending.
        """
        pass

    @abstractmethod
    async def aggregate(self, group_by: str, filters: InvestmentFilters) -> List[AggregateRow]:
        """One row per distinct ``group_by`` value present in the filtered set"""
        pass

    @abstractmethod
    async def amount_range(self) -> Tuple[Optional[Decimal], Optional[Decimal]]:
        """Min and max domestic amount over rows with a positive domestic amount"""
        pass

    async def averages(self, filters: InvestmentFilters) -> dict:
        """Average amounts, projects and workers; optional for stores"""
        raise NotImplementedError(f"{type(self).__name__} does not compute averages")

    async def ping(self) -> None:
        """Connectivity probe; optional for stores"""
        logger.debug(f"{type(self).__name__} has no connectivity probe")
