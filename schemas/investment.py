"""
Pydantic schemas for investment records with validation
"""

from decimal import Decimal
from pydantic import BaseModel, Field, root_validator, validator
from typing import Optional
from models.base import InvestmentStatus


class InvestmentRecordCreate(BaseModel):
    """
    Schema for creating investment records with validation.

    Ensures:
    - Amounts and counters are non-negative
    - Only the amount matching ``status`` is populated
    - Categorical text is stripped (but not otherwise normalised)
    """

    year: int = Field(..., ge=1900, le=2100)

    province: Optional[str] = Field(None, max_length=200)
    sector: Optional[str] = Field(None, max_length=200)
    region: Optional[str] = Field(None, max_length=200)
    country: Optional[str] = Field(None, max_length=200)

    status: InvestmentStatus

    domestic_amount: Decimal = Field(default=Decimal("0"), ge=0)
    foreign_amount: Decimal = Field(default=Decimal("0"), ge=0)

    projects: int = Field(default=0, ge=0)
    domestic_workers: int = Field(default=0, ge=0)
    foreign_workers: int = Field(default=0, ge=0)

    @validator("province", "sector", "region", "country", pre=True)
    def strip_text(cls, v):
        if isinstance(v, str):
            v = v.strip()
            return v or None
        return v

    @root_validator(skip_on_failure=True)
    def check_currency_partition(cls, values):
        """PMDN rows carry IDR only, PMA rows carry USD only"""
        status = values.get("status")
        if status == InvestmentStatus.DOMESTIC and values.get("foreign_amount"):
            raise ValueError("PMDN records must have foreign_amount = 0")
        if status == InvestmentStatus.FOREIGN and values.get("domestic_amount"):
            raise ValueError("PMA records must have domestic_amount = 0")
        return values


class InvestmentRecordResponse(BaseModel):
    """Response model for a single investment record"""
    id: int
    year: int
    province: Optional[str]
    sector: Optional[str]
    region: Optional[str]
    country: Optional[str]
    status: InvestmentStatus
    domestic_amount: Decimal
    foreign_amount: Decimal
    projects: int
    domestic_workers: int
    foreign_workers: int

    class Config:
        from_attributes = True
        use_enum_values = True
        json_schema_extra = {
            "example": {
                "id": 1,
                "year": 2021,
                "province": "Jawa Barat",
                "sector": "Industri Logam Dasar",
                "region": "Jawa",
                "country": None,
                "status": "PMDN",
                "domestic_amount": "125000.50",
                "foreign_amount": "0.00",
                "projects": 12,
                "domestic_workers": 340,
                "foreign_workers": 0
            }
        }
