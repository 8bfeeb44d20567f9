# pricesync/models/price_record.py

"""Per-run aggregated competitor price models."""

from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal


@dataclass(frozen=True)
class AggregatedPriceRecord:
    """Best competitor price and total stock for one variant in one run."""

    variant_id: int
    product_id: int | None
    competitor: str
    price: Decimal
    stock: int
    offer_count: int
    observed_at: datetime


@dataclass(frozen=True)
class HistoricalOffer:
    """Append-only audit row for one aggregated record of one execution."""

    execution_id: int
    variant_id: int
    product_id: int | None
    competitor: str
    price: Decimal
    stock: int
    observed_at: datetime

    @classmethod
    def from_record(
        cls, execution_id: int, record: AggregatedPriceRecord,
    ) -> "HistoricalOffer":
        """Stamp an aggregated record with the execution that produced it."""
        return cls(
            execution_id=execution_id,
            variant_id=record.variant_id,
            product_id=record.product_id,
            competitor=record.competitor,
            price=record.price,
            stock=record.stock,
            observed_at=record.observed_at,
        )
