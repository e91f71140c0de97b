from decimal import Decimal
from sqlalchemy import Column, Integer, String, Numeric, Enum, Index, CheckConstraint
from models.base import Base, InvestmentStatus


class InvestmentRecord(Base):
    """
    One investment entry from the BKPM realisation dataset.

    Schema Design:
    - Single flat table, no foreign keys
    - Categorical fields are free text (typos and duplicates are kept as-is,
      grouping is by exact string match)
    - Column identifiers follow the source spreadsheet and are case-sensitive

    Currency tracks:
    - PMDN rows carry domestic_amount (million IDR), foreign_amount is 0
    - PMA rows carry foreign_amount (thousand USD), domestic_amount is 0
    """
    __tablename__ = "investment_data"

    id = Column(Integer, primary_key=True, autoincrement=True)

    year = Column("Tahun", Integer, nullable=False)

    # Categorical fields
    province = Column("Provinsi", String(200), nullable=True)
    sector = Column("SektorUtama", String(200), nullable=True)
    region = Column("Wilayah", String(200), nullable=True)
    country = Column("Negara", String(200), nullable=True)

    status = Column(
        "Status",
        Enum(
            InvestmentStatus,
            name="investment_status",
            native_enum=False,
            create_constraint=True,
            values_callable=lambda statuses: [s.value for s in statuses],
            length=8,
        ),
        nullable=False,
    )

    # Currency tracks
    domestic_amount = Column("InvestasiRpJuta", Numeric(20, 2), nullable=False, default=Decimal("0"))
    foreign_amount = Column("TambahanInvestasiDalamUSDRibu", Numeric(20, 2), nullable=False, default=Decimal("0"))

    # Counters
    projects = Column("Proyek", Integer, nullable=False, default=0)
    domestic_workers = Column("TKI", Integer, nullable=False, default=0)
    foreign_workers = Column("TKA", Integer, nullable=False, default=0)

    __table_args__ = (
        CheckConstraint('"InvestasiRpJuta" >= 0', name="ck_investment_domestic_non_negative"),
        CheckConstraint('"TambahanInvestasiDalamUSDRibu" >= 0', name="ck_investment_foreign_non_negative"),
        CheckConstraint(
            '("Status" = \'PMDN\' AND "TambahanInvestasiDalamUSDRibu" = 0) '
            'OR ("Status" = \'PMA\' AND "InvestasiRpJuta" = 0)',
            name="ck_investment_currency_partition",
        ),
        Index("idx_investment_data_tahun", "Tahun"),
        Index("idx_investment_data_sektor", "SektorUtama"),
        Index("idx_investment_data_wilayah", "Wilayah"),
        Index("idx_investment_data_status", "Status"),
    )

    def satisfies_partition(self) -> bool:
        """True when only the amount matching ``status`` may be non-zero."""
        domestic = self.domestic_amount or Decimal("0")
        foreign = self.foreign_amount or Decimal("0")
        if self.status == InvestmentStatus.DOMESTIC:
            return foreign == 0
        if self.status == InvestmentStatus.FOREIGN:
            return domestic == 0
        return False

    def __repr__(self) -> str:
        return f"<InvestmentRecord id={self.id} year={self.year} status={self.status}>"
