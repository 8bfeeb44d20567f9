# pricesync/matching/matcher.py

"""Offer to internal variant matching.

Rules are tried in order and the first one that yields a result wins:

1. Explicit operator mapping for ``(competitor, source_sku)``.
2. Candidate variants whose SKU equals ``source_sku``; for title-keyed
   competitors with no SKU candidate, the variants of products whose
   title contains the offer title's first three words.
3. Attribute filtering of those candidates on storage, color and
   condition.  Exactly one survivor is a match; several survivors are
   reported as ambiguous instead of picking one.
"""

import logging

from pricesync.matching.catalog_index import CatalogIndex, title_prefix
from pricesync.models.catalog import CatalogVariant, VariantRef
from pricesync.models.match_result import MatchResult
from pricesync.models.offer import Offer

logger = logging.getLogger("pricesync.matching")

_ATTRIBUTES = ("storage", "color", "condition")


def attribute_matches(
    offer_value: str | None, variant_value: str | None,
) -> bool:
    """Containment in either direction, ignoring case.

    An attribute absent on the offer side never rules a candidate out.
    """
    if not offer_value:
        return True
    wanted = offer_value.lower()
    have = (variant_value or "").lower()
    return have in wanted or wanted in have


def filter_candidates(
    offer: Offer, candidates: list[CatalogVariant],
) -> list[CatalogVariant]:
    """Candidates whose storage, color and condition all match the offer."""
    return [
        variant for variant in candidates
        if all(
            attribute_matches(
                getattr(offer, attr), getattr(variant, attr)
            )
            for attr in _ATTRIBUTES
        )
    ]


class Matcher:
    """Resolves offers against one run's catalog snapshot."""

    def __init__(
        self,
        catalog: CatalogIndex,
        title_fallback: frozenset[str] = frozenset(),
    ) -> None:
        self.catalog = catalog
        self.title_fallback = title_fallback

    def _candidates(self, offer: Offer) -> tuple[list[CatalogVariant], str]:
        """Candidate variants and the rule that produced them."""
        by_sku = self.catalog.variants_with_sku(offer.source_sku)
        if by_sku:
            return by_sku, "sku"
        if offer.competitor in self.title_fallback and offer.title:
            products = self.catalog.products_matching_title(
                title_prefix(offer.title)
            )
            return self.catalog.variants_for_products(products), "title"
        return [], "sku"

    def match(self, offer: Offer) -> MatchResult:
        """Resolve one offer; misses carry a reason instead of a ref."""
        ref = self.catalog.lookup(offer.competitor, offer.source_sku)
        if ref is not None:
            return MatchResult(offer=offer, ref=ref, method="mapping")

        candidates, method = self._candidates(offer)
        if not candidates:
            return MatchResult(offer=offer, reason="no_candidates")

        survivors = filter_candidates(offer, candidates)
        if len(survivors) == 1:
            variant = survivors[0]
            if variant.id is None:
                return MatchResult(offer=offer, reason="no_candidates")
            return MatchResult(
                offer=offer,
                ref=VariantRef(
                    product_id=variant.product_id, variant_id=variant.id,
                ),
                method=method,
            )

        if survivors:
            logger.debug(
                "Ambiguous %s offer %s: %d candidates survive",
                offer.competitor,
                offer.source_sku,
                len(survivors),
            )
            return MatchResult(offer=offer, reason="ambiguous")
        return MatchResult(offer=offer, reason="no_attribute_match")

    def match_all(self, offers: list[Offer]) -> list[MatchResult]:
        """Match a batch of offers, logging the hit rate."""
        results = [self.match(offer) for offer in offers]
        matched = sum(1 for r in results if r.matched)
        if results:
            logger.info(
                "Matched %d/%d offers", matched, len(results),
            )
        return results
