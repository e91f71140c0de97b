"""
Filtered, sorted, paginated reads over the investment table.

Two pagination modes, mutually exclusive per call:

- Offset mode: ``LIMIT/OFFSET`` plus a separate ``COUNT(*)`` for totals.
- Cursor mode: keyset pagination on the single sort field. The cursor is a
  urlsafe base64 JSON object ``{"field": <sort field>, "value": <last value>}``.

Cursor mode limitations (kept on purpose, callers must not rely otherwise):

- The boundary predicate is strict (``<`` descending, ``>`` ascending), so rows
  sharing the boundary value that did not fit on the previous page are skipped.
- ``has_more`` means "the page came back full". On an exact boundary this is a
  false positive unless lookahead is enabled (``CURSOR_LOOKAHEAD``), in which
  case ``page_size + 1`` rows are fetched to decide.
- A NULL sort value at the boundary yields an empty next page.
"""

import base64
import binascii
import json
import math
import logging
from decimal import Decimal
from typing import Any, Dict, List, Mapping, Optional, Union

from sqlalchemy import Select, and_, func, inspect, select

from analytics.base import CursorBoundary, InvestmentStore, PageWindow, SortSpec
from core.config import settings
from core.exceptions import InvalidQueryError
from models.investment import InvestmentRecord
from schemas.analytics import CursorPagination, OffsetPagination, PageResponse
from schemas.investment import InvestmentRecordResponse
from schemas.query import (
    FIELD_ALIASES,
    SORTABLE_FIELDS,
    InvestmentFilters,
    PageQuery,
    canonical_field,
    validate_query,
)

logger = logging.getLogger(__name__)


# ============================================================================
# Statement construction
# ============================================================================

def column_for(field: str):
    """ORM attribute for a canonical field name"""
    return getattr(InvestmentRecord, canonical_field(field, SORTABLE_FIELDS, "field"))


def build_filter_conditions(filters: InvestmentFilters) -> list:
    """Equality conditions for every active filter (AND-ed by the caller)"""
    conditions = []

    if filters.year is not None:
        conditions.append(InvestmentRecord.year == filters.year)

    if filters.sector is not None:
        conditions.append(InvestmentRecord.sector == filters.sector)

    if filters.region is not None:
        conditions.append(InvestmentRecord.region == filters.region)

    if filters.status is not None:
        conditions.append(InvestmentRecord.status == filters.status)

    return conditions


def build_boundary_condition(boundary: CursorBoundary):
    column = column_for(boundary.field)
    if boundary.descending:
        return column < boundary.value
    return column > boundary.value


def build_page_statement(filters: InvestmentFilters, sort: SortSpec, window: PageWindow) -> Select:
    """SELECT for one page: filters, optional keyset boundary, single-key order, window"""
    query = select(InvestmentRecord)
    conditions = build_filter_conditions(filters)

    if window.boundary is not None:
        conditions.append(build_boundary_condition(window.boundary))

    if conditions:
        query = query.where(and_(*conditions))

    sort_column = column_for(sort.field)
    query = query.order_by(sort_column.desc() if sort.descending else sort_column.asc())
    query = query.limit(window.limit)

    if window.offset:
        query = query.offset(window.offset)

    return query


def build_count_statement(filters: InvestmentFilters) -> Select:
    """COUNT(*) over the filtered set"""
    count_query = select(func.count()).select_from(InvestmentRecord)
    conditions = build_filter_conditions(filters)
    if conditions:
        count_query = count_query.where(and_(*conditions))
    return count_query


# ============================================================================
# Cursor codec
# ============================================================================

def _json_default(value: Any):
    if isinstance(value, Decimal):
        return str(value)
    raise TypeError(f"Cannot encode {type(value).__name__} in a cursor")


def encode_cursor(field: str, value: Any) -> str:
    """Opaque cursor pointing at the last-seen sort value"""
    payload = json.dumps({"field": field, "value": value}, default=_json_default)
    return base64.urlsafe_b64encode(payload.encode("utf-8")).decode("ascii")


def _coerce_cursor_value(field: str, value: Any) -> Any:
    """Restore the column's Python type (Decimal, int, enum, str)"""
    if value is None:
        return None
    python_type = inspect(InvestmentRecord).columns[field].type.python_type
    if python_type is int:
        if isinstance(value, bool) or (isinstance(value, float) and not value.is_integer()):
            raise ValueError(f"{value!r} is not an integer")
        return int(value)
    if isinstance(value, python_type):
        return value
    if python_type is Decimal:
        return Decimal(str(value))
    return python_type(value)


def decode_cursor(cursor: str, sort_by: str, descending: bool) -> CursorBoundary:
    """
    Decode a cursor into a keyset boundary for ``sort_by``.

    Raises:
        InvalidQueryError: Undecodable cursor, or a cursor issued for another sort field
    """
    try:
        padded = cursor + "=" * (-len(cursor) % 4)
        data = json.loads(base64.urlsafe_b64decode(padded.encode("ascii")).decode("utf-8"))
    except (binascii.Error, UnicodeError, ValueError) as e:
        raise InvalidQueryError(
            "Malformed cursor",
            context={"field_name": "cursor", "field_value": cursor},
            original_exception=e
        )

    if not isinstance(data, dict) or "value" not in data:
        raise InvalidQueryError(
            "Malformed cursor payload",
            context={"field_name": "cursor", "field_value": cursor}
        )

    issued_for = data.get("field") or sort_by
    field = FIELD_ALIASES.get(issued_for) if isinstance(issued_for, str) else None
    if field != sort_by:
        raise InvalidQueryError(
            f"Cursor was issued for sort field {data.get('field')!r}, not {sort_by!r}",
            context={"field_name": "cursor", "field_value": data.get("field"), "sort_by": sort_by}
        )

    try:
        value = _coerce_cursor_value(field, data["value"])
    except (TypeError, ValueError, ArithmeticError) as e:
        raise InvalidQueryError(
            f"Cursor value {data['value']!r} does not match field {field!r}",
            context={"field_name": "cursor", "field_value": data["value"]},
            original_exception=e
        )

    return CursorBoundary(field=field, value=value, descending=descending)


# ============================================================================
# Query builder
# ============================================================================

class InvestmentQueryBuilder:
    """
    Paginated reads against an InvestmentStore.

    Responsibilities:
    - Validate raw parameters (unknown keys, bad year, bad sort -> InvalidQueryError)
    - Run offset pages with a full count, or cursor pages with a keyset boundary
    - Build the page response model
    """

    def __init__(self, store: InvestmentStore, cursor_lookahead: Optional[bool] = None):
        self.store = store
        self.cursor_lookahead = settings.CURSOR_LOOKAHEAD if cursor_lookahead is None else cursor_lookahead

    async def fetch_page(self, params: Union[PageQuery, Mapping[str, Any], None] = None) -> PageResponse:
        """
        Fetch one page.

        Args:
            params: PageQuery or a mapping of raw parameters

        Returns:
            PageResponse with OffsetPagination or CursorPagination metadata
        """
        query = validate_query(PageQuery, params)
        filters = query.filters_only()
        sort = SortSpec(field=query.sort_by, descending=query.descending)

        logger.info(
            f"Fetching page: mode={'cursor' if query.use_cursor else 'offset'}, "
            f"page={query.page}, page_size={query.page_size}, "
            f"sort={query.sort_by} {query.sort_order}, filters={filters.active()}"
        )

        if query.use_cursor:
            return await self._fetch_cursor_page(query, filters, sort)
        return await self._fetch_offset_page(query, filters, sort)

    async def _fetch_offset_page(
        self,
        query: PageQuery,
        filters: InvestmentFilters,
        sort: SortSpec
    ) -> PageResponse:
        total = await self.store.count(filters)
        offset = (query.page - 1) * query.page_size

        rows = await self.store.query(filters, sort, PageWindow(limit=query.page_size, offset=offset))
        total_pages = math.ceil(total / query.page_size)

        logger.info(f"Retrieved {len(rows)} records out of {total} total")

        return PageResponse(
            data=self._to_response(rows),
            pagination=OffsetPagination(
                total=total,
                page=query.page,
                page_size=query.page_size,
                total_pages=total_pages
            ),
            filters_applied=self._filters_applied(filters)
        )

    async def _fetch_cursor_page(
        self,
        query: PageQuery,
        filters: InvestmentFilters,
        sort: SortSpec
    ) -> PageResponse:
        boundary = None
        if query.cursor:
            boundary = decode_cursor(query.cursor, query.sort_by, query.descending)

        limit = query.page_size + 1 if self.cursor_lookahead else query.page_size
        rows = await self.store.query(filters, sort, PageWindow(limit=limit, boundary=boundary))

        if self.cursor_lookahead:
            has_more = len(rows) > query.page_size
            rows = rows[:query.page_size]
        else:
            has_more = len(rows) == query.page_size

        next_cursor = None
        if has_more and rows:
            next_cursor = encode_cursor(query.sort_by, getattr(rows[-1], query.sort_by))

        logger.info(f"Retrieved {len(rows)} records (has_more={has_more})")

        return PageResponse(
            data=self._to_response(rows),
            pagination=CursorPagination(
                page_size=query.page_size,
                next_cursor=next_cursor,
                has_more=has_more
            ),
            filters_applied=self._filters_applied(filters)
        )

    @staticmethod
    def _to_response(rows: List[InvestmentRecord]) -> List[InvestmentRecordResponse]:
        return [InvestmentRecordResponse.model_validate(row) for row in rows]

    @staticmethod
    def _filters_applied(filters: InvestmentFilters) -> Dict[str, Any]:
        return {
            k: (v.value if hasattr(v, "value") else v)
            for k, v in filters.active().items()
        }
