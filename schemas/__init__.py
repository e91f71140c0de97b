"""
Pydantic schemas for data validation and serialization.

Schemas:
    query: Filter, sort, pagination and grouping parameters
    investment: Investment record create/response schemas
    analytics: Page, bucket, summary and metadata result schemas

Features:
    - Unknown query keys are rejected, not ignored
    - Bad parameters surface as core.exceptions.InvalidQueryError
    - Decimal amounts end to end (no float drift)

Usage:
    from schemas.query import PageQuery, InvestmentFilters, validate_query
    from schemas.analytics import PageResponse, AggregatedBucket, MetadataSnapshot

Example:
    params = validate_query(PageQuery, {"year": "2021", "sort_by": "Tahun"})
    assert params.year == 2021
    assert params.sort_by == "year"
"""

__all__ = [
    "InvestmentFilters",
    "PageQuery",
    "validate_query",
    "InvestmentRecordCreate",
    "InvestmentRecordResponse",
    "OffsetPagination",
    "CursorPagination",
    "PageResponse",
    "AggregatedBucket",
    "InvestmentSummary",
    "MetadataSnapshot",
    "ConnectionStatus",
]
