"""
Foreign (USD) to domestic (IDR) conversion with a year-keyed rate table
"""

from decimal import Decimal
from types import MappingProxyType
from typing import Iterable, Mapping, Optional, Union

from core.config import settings
from schemas.analytics import AggregatedBucket

Number = Union[int, float, str, Decimal]


def _as_decimal(value: Number) -> Decimal:
    if isinstance(value, Decimal):
        return value
    if isinstance(value, float):
        return Decimal(str(value))
    return Decimal(value)


class CurrencyNormalizer:
    """
    Converts USD figures to IDR using a static APBN rate table.

    The table is frozen at construction; years without an entry fall back to
    ``default_rate``. ``to_domestic`` is pure and exact (Decimal arithmetic).
    """

    def __init__(
        self,
        rates: Optional[Mapping[int, Number]] = None,
        default_rate: Optional[Number] = None,
        foreign_unit_scale: Optional[Number] = None
    ):
        source = settings.EXCHANGE_RATES if rates is None else rates
        self.rates: Mapping[int, Decimal] = MappingProxyType(
            {int(year): _as_decimal(rate) for year, rate in source.items()}
        )
        self.default_rate = _as_decimal(settings.DEFAULT_EXCHANGE_RATE if default_rate is None else default_rate)
        self.foreign_unit_scale = _as_decimal(
            settings.FOREIGN_UNIT_SCALE if foreign_unit_scale is None else foreign_unit_scale
        )

    def rate_for(self, year: int) -> Decimal:
        return self.rates.get(year, self.default_rate)

    def to_domestic(self, amount: Number, year: int) -> Decimal:
        """``amount * rate[year]``, or ``amount * default_rate`` for unmapped years"""
        return _as_decimal(amount) * self.rate_for(year)

    # ------------------------------------------------------------------
    # Combined totals over year-keyed buckets
    # ------------------------------------------------------------------

    def domestic_total(self, buckets: Iterable[AggregatedBucket]) -> Decimal:
        """PMDN total, million IDR"""
        return sum((b.domestic_sum for b in buckets), Decimal("0"))

    def foreign_total(self, buckets: Iterable[AggregatedBucket]) -> Decimal:
        """PMA total, thousand USD"""
        return sum((b.foreign_sum for b in buckets), Decimal("0"))

    def combined_total(self, buckets: Iterable[AggregatedBucket]) -> Decimal:
        """
        PMDN + PMA in million IDR.

        Buckets must be keyed by year (as produced by a yearly trend); each
        foreign sum is converted with its own year's rate and scaled from
        thousand IDR to million IDR.

        Raises:
            ValueError: If a bucket key is not a year
        """
        total = Decimal("0")
        for bucket in buckets:
            if not isinstance(bucket.key, int):
                raise ValueError(f"combined_total needs year-keyed buckets, got key {bucket.key!r}")
            total += bucket.domestic_sum
            total += self.to_domestic(bucket.foreign_sum, bucket.key) * self.foreign_unit_scale
        return total
