"""
Pydantic schemas for query parameters (filters, sorting, pagination, grouping)
"""

from pydantic import BaseModel, Field, ValidationError, validator
from typing import Optional, Dict, Any, Mapping, Type, TypeVar, Union
from core.config import settings
from core.exceptions import InvalidQueryError
from models.base import InvestmentStatus

Q = TypeVar("Q", bound=BaseModel)


# Public field names accepted by the query layer, keyed by every accepted
# spelling (ORM attribute or reference column identifier).
FIELD_ALIASES: Dict[str, str] = {
    "id": "id",
    "year": "year", "Tahun": "year",
    "province": "province", "Provinsi": "province",
    "sector": "sector", "SektorUtama": "sector",
    "region": "region", "Wilayah": "region",
    "country": "country", "Negara": "country",
    "status": "status", "Status": "status",
    "domestic_amount": "domestic_amount", "InvestasiRpJuta": "domestic_amount",
    "foreign_amount": "foreign_amount", "TambahanInvestasiDalamUSDRibu": "foreign_amount",
    "projects": "projects", "Proyek": "projects",
    "domestic_workers": "domestic_workers", "TKI": "domestic_workers",
    "foreign_workers": "foreign_workers", "TKA": "foreign_workers",
}

SORTABLE_FIELDS = frozenset(FIELD_ALIASES.values())
GROUPABLE_FIELDS = frozenset({"year", "sector", "region", "status", "province", "country"})
DISTINCT_FIELDS = frozenset({"year", "sector", "region", "province", "status", "country"})


def canonical_field(name: Any, allowed: frozenset, parameter: str) -> str:
    """Resolve an accepted field spelling, raising InvalidQueryError otherwise."""
    canonical = FIELD_ALIASES.get(name) if isinstance(name, str) else None
    if canonical is None or canonical not in allowed:
        raise InvalidQueryError(
            f"Unknown {parameter}: {name!r}",
            context={
                "field_name": parameter,
                "field_value": name,
                "allowed": sorted(allowed),
            }
        )
    return canonical


def validate_query(model: Type[Q], raw: Union[Q, Mapping[str, Any], None]) -> Q:
    """
    Validate raw parameters into ``model``.

    Pydantic validation errors (unknown keys, non-numeric year, bad sort
    field, ...) are re-raised as InvalidQueryError.
    """
    if isinstance(raw, model):
        return raw
    try:
        return model.model_validate(dict(raw or {}))
    except ValidationError as e:
        errors = e.errors()
        raise InvalidQueryError(
            f"Invalid {model.__name__}: {errors[0]['msg'] if errors else e}",
            context={
                "field_name": ".".join(str(p) for p in errors[0]["loc"]) if errors else None,
                "field_value": errors[0].get("input") if errors else None,
                "error_count": len(errors),
            },
            original_exception=e
        )


class InvestmentFilters(BaseModel):
    """
    Conjunctive equality filters on the investment table.

    Absent (None or blank) filters are omitted, never wildcarded. Unknown
    keys are rejected.
    """
    year: Optional[int] = Field(None, description="Filter by reporting year")
    sector: Optional[str] = Field(None, description="Filter by main sector (exact match)")
    region: Optional[str] = Field(None, description="Filter by region (exact match)")
    status: Optional[InvestmentStatus] = Field(None, description="Filter by PMDN / PMA")

    @validator("year", pre=True)
    def validate_year(cls, v):
        if v is None or (isinstance(v, str) and not v.strip()):
            return None
        if isinstance(v, bool):
            raise ValueError("year must be an integer")
        if isinstance(v, str):
            v = v.strip()
            if not v.lstrip("-").isdigit():
                raise ValueError(f"year must be numeric, got {v!r}")
            return int(v)
        return v

    @validator("sector", "region", pre=True)
    def blank_to_none(cls, v):
        if isinstance(v, str) and not v.strip():
            return None
        return v

    @validator("status", pre=True)
    def validate_status(cls, v):
        """Accept enum values (PMDN/PMA) and member names (DOMESTIC/FOREIGN)"""
        if v is None or (isinstance(v, str) and not v.strip()):
            return None
        if isinstance(v, str) and v.upper() in InvestmentStatus.__members__:
            return InvestmentStatus[v.upper()]
        return v

    def active(self) -> Dict[str, Any]:
        """Filters that will be applied, keyed by field name."""
        return {
            name: getattr(self, name)
            for name in ("year", "sector", "region", "status")
            if getattr(self, name) is not None
        }

    def filters_only(self) -> "InvestmentFilters":
        """Strip any pagination fields a subclass carries."""
        return InvestmentFilters(**self.active())

    class Config:
        extra = "forbid"


class PageQuery(InvestmentFilters):
    """Query parameters for paginated reads (offset or cursor mode)"""
    page: int = Field(default=1, ge=1, description="Page number (1-indexed, offset mode)")
    page_size: int = Field(
        default=settings.DEFAULT_PAGE_SIZE,
        ge=1,
        le=settings.MAX_PAGE_SIZE,
        description="Rows per page"
    )

    # Sorting
    sort_by: str = Field(default="year", description="Single sort field")
    sort_order: str = Field(default="desc", description="Sort order: asc or desc")

    # Cursor pagination
    cursor: Optional[str] = Field(None, description="Opaque cursor from a previous page")
    use_cursor: bool = Field(default=False, description="Use keyset pagination instead of offsets")

    @validator("sort_order")
    def validate_sort_order(cls, v):
        if v.lower() not in ["asc", "desc"]:
            raise ValueError("sort_order must be 'asc' or 'desc'")
        return v.lower()

    @validator("sort_by")
    def validate_sort_by(cls, v):
        canonical = FIELD_ALIASES.get(v)
        if canonical is None:
            raise ValueError(f"sort_by must be one of: {', '.join(sorted(SORTABLE_FIELDS))}")
        return canonical

    @validator("cursor", pre=True)
    def blank_cursor(cls, v):
        if isinstance(v, str) and not v.strip():
            return None
        return v

    @property
    def descending(self) -> bool:
        return self.sort_order == "desc"
