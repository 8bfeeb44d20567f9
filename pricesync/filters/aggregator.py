# pricesync/filters/aggregator.py

"""Collapse matched offers into one price record per variant and competitor."""

import logging
from datetime import datetime
from decimal import Decimal

from pricesync.models.match_result import MatchResult
from pricesync.models.price_record import AggregatedPriceRecord

logger = logging.getLogger("pricesync.filters")


class PriceAggregator:
    """Resolve many offers per ``(variant_id, competitor)`` to one record."""

    @staticmethod
    def aggregate(
        results: list[MatchResult],
        observed_at: datetime,
    ) -> list[AggregatedPriceRecord]:
        """Group matched results and keep the lowest price and total stock.

        Unmatched results are ignored, so a group only exists when at
        least one offer matched it.  Output is sorted by competitor then
        variant id, which makes repeated calls on the same input return
        identical lists.
        """
        prices: dict[tuple[int, str], Decimal] = {}
        stocks: dict[tuple[int, str], int] = {}
        counts: dict[tuple[int, str], int] = {}
        products: dict[tuple[int, str], int | None] = {}

        for result in results:
            if result.ref is None:
                continue
            key = (result.ref.variant_id, result.offer.competitor)
            price = result.offer.price
            if key not in prices or price < prices[key]:
                prices[key] = price
            stocks[key] = stocks.get(key, 0) + result.offer.stock
            counts[key] = counts.get(key, 0) + 1
            if products.get(key) is None:
                products[key] = result.ref.product_id

        records = [
            AggregatedPriceRecord(
                variant_id=variant_id,
                product_id=products[(variant_id, competitor)],
                competitor=competitor,
                price=prices[(variant_id, competitor)],
                stock=stocks[(variant_id, competitor)],
                offer_count=counts[(variant_id, competitor)],
                observed_at=observed_at,
            )
            for variant_id, competitor in sorted(
                prices, key=lambda k: (k[1], k[0])
            )
        ]

        if records:
            logger.info(
                "Aggregated %d matched offers into %d price records",
                sum(counts.values()),
                len(records),
            )
        return records
