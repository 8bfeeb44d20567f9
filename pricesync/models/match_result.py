# pricesync/models/match_result.py

"""Offer annotated with the internal variant it was matched to."""

from dataclasses import dataclass

from pricesync.models.catalog import VariantRef
from pricesync.models.offer import Offer


@dataclass(frozen=True)
class MatchResult:
    """An offer plus its (optional) internal variant association.

    ``method`` names the rule that produced the match (``mapping``,
    ``sku`` or ``title``); ``reason`` explains a miss (``no_candidates``,
    ``no_attribute_match`` or ``ambiguous``).
    """

    offer: Offer
    ref: VariantRef | None = None
    method: str | None = None
    reason: str | None = None

    @property
    def matched(self) -> bool:
        """True when the offer resolved to exactly one variant."""
        return self.ref is not None

    @property
    def variant_id(self) -> int | None:
        return self.ref.variant_id if self.ref else None

    @property
    def product_id(self) -> int | None:
        return self.ref.product_id if self.ref else None
