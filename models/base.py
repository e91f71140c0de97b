from sqlalchemy.orm import declarative_base
import enum

Base = declarative_base()


# ============================================================================
# ENUMS
# ============================================================================

class InvestmentStatus(str, enum.Enum):
    """Investment status: which currency track a record belongs to"""
    DOMESTIC = "PMDN"  # Penanaman Modal Dalam Negeri, IDR
    FOREIGN = "PMA"    # Penanaman Modal Asing, USD
