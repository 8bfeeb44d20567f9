# pricesync/filters/offer_validator.py

"""Offer validation: drop unusable offers before matching."""

import logging

from pricesync.models.offer import Offer

logger = logging.getLogger("pricesync.filters")


class OfferValidator:
    """Validate offers and drop those missing essential fields."""

    @staticmethod
    def validate(
        offers: list[Offer],
    ) -> tuple[list[Offer], int]:
        """Drop offers with a negative price, negative stock or no SKU.

        Returns the valid offers and the count of dropped items.
        """
        valid: list[Offer] = []
        dropped = 0

        for offer in offers:
            if offer.price < 0:
                logger.debug(
                    "Dropped offer with negative price "
                    "(competitor=%s, sku=%s)",
                    offer.competitor,
                    offer.source_sku,
                )
                dropped += 1
                continue
            if offer.stock < 0:
                logger.debug(
                    "Dropped offer with negative stock "
                    "(competitor=%s, sku=%s)",
                    offer.competitor,
                    offer.source_sku,
                )
                dropped += 1
                continue
            if not offer.source_sku.strip():
                logger.debug(
                    "Dropped offer without source SKU "
                    "(competitor=%s, url=%s)",
                    offer.competitor,
                    offer.source_url,
                )
                dropped += 1
                continue
            valid.append(offer)

        if dropped:
            logger.info(
                "Validation dropped %d invalid offers",
                dropped,
            )

        return valid, dropped
