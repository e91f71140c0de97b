"""
SQLAlchemy ORM models for database tables.

Models:
    base: Base declarative class and shared enums (InvestmentStatus)
    investment: The flat ``investment_data`` table of investment records

Database Schema:
    A single table with case-sensitive column identifiers taken from the
    source spreadsheet ("Tahun", "SektorUtama", "Wilayah", ...). ORM
    attributes use English names.

Usage:
    from models.base import Base, InvestmentStatus
    from models.investment import InvestmentRecord

Example:
    record = InvestmentRecord(
        year=2021,
        sector="Industri",
        status=InvestmentStatus.DOMESTIC,
        domestic_amount=Decimal("500"),
        foreign_amount=Decimal("0"),
    )
    session.add(record)
    await session.commit()
"""

__all__ = [
    "Base",
    "InvestmentStatus",
    "InvestmentRecord",
]
