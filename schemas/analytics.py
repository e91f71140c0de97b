"""
Pydantic schemas for query-layer results (pages, buckets, metadata)
"""

from datetime import datetime
from decimal import Decimal
from pydantic import BaseModel, Field
from typing import Optional, List, Dict, Any, Union, Tuple, Literal
from schemas.investment import InvestmentRecordResponse


# ============================================================================
# Pagination Schemas
# ============================================================================

class OffsetPagination(BaseModel):
    """Offset pagination metadata; ``total`` comes from a separate count query"""
    mode: Literal["offset"] = "offset"
    total: int
    page: int
    page_size: int
    total_pages: int

    @property
    def has_next(self) -> bool:
        return self.page < self.total_pages

    @property
    def has_previous(self) -> bool:
        return self.page > 1


class CursorPagination(BaseModel):
    """
    Cursor (keyset) pagination metadata.

    ``has_more`` is true when the page came back full. Without lookahead a
    full final page reports a false positive; the next request then returns
    an empty page with ``has_more`` false.
    """
    mode: Literal["cursor"] = "cursor"
    page_size: int
    next_cursor: Optional[str] = None
    has_more: bool


class PageResponse(BaseModel):
    """Paginated data response"""
    data: List[InvestmentRecordResponse]
    pagination: Union[OffsetPagination, CursorPagination] = Field(..., discriminator="mode")
    filters_applied: Dict[str, Any] = Field(default_factory=dict)

    class Config:
        json_schema_extra = {
            "example": {
                "data": [
                    {
                        "id": 1,
                        "year": 2021,
                        "sector": "Pertambangan",
                        "region": "Sumatera",
                        "status": "PMA",
                        "domestic_amount": "0.00",
                        "foreign_amount": "1500.00"
                    }
                ],
                "pagination": {
                    "mode": "offset",
                    "total": 150,
                    "page": 1,
                    "page_size": 50,
                    "total_pages": 3
                },
                "filters_applied": {"year": 2021}
            }
        }


# ============================================================================
# Aggregation Schemas
# ============================================================================

class AggregatedBucket(BaseModel):
    """One aggregation group: row count plus the two currency sums"""
    key: Union[int, str, None]
    count: int = Field(..., ge=1)
    domestic_sum: Decimal = Field(default=Decimal("0"), description="Sum of PMDN amounts, million IDR")
    foreign_sum: Decimal = Field(default=Decimal("0"), description="Sum of PMA amounts, thousand USD")


class InvestmentSummary(BaseModel):
    """Average and median figures over the filtered set"""
    record_count: int
    avg_domestic_amount: Optional[Decimal] = None
    avg_foreign_amount: Optional[Decimal] = None
    median_domestic_amount: Optional[Decimal] = None
    median_foreign_amount: Optional[Decimal] = None
    avg_projects: Optional[Decimal] = None
    avg_domestic_workers: Optional[Decimal] = None
    avg_foreign_workers: Optional[Decimal] = None


# ============================================================================
# Metadata Schemas
# ============================================================================

class MetadataSnapshot(BaseModel):
    """Distinct filter values and table-wide figures, cached by the metadata cache"""
    years: List[int] = Field(default_factory=list)
    sectors: List[str] = Field(default_factory=list)
    regions: List[str] = Field(default_factory=list)
    provinces: List[str] = Field(default_factory=list)
    statuses: List[str] = Field(default_factory=list)
    countries: List[str] = Field(default_factory=list)
    total_records: int = 0
    investment_range: Tuple[Optional[Decimal], Optional[Decimal]] = (None, None)
    last_updated: datetime = Field(default_factory=datetime.utcnow)

    class Config:
        frozen = True


class ConnectionStatus(BaseModel):
    """Result of a database connectivity probe"""
    success: bool
    error: Optional[str] = None
    checked_at: datetime = Field(default_factory=datetime.utcnow)
