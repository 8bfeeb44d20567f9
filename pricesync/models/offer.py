# pricesync/models/offer.py

"""Raw and normalised competitor offer models."""

from dataclasses import dataclass, field
from decimal import Decimal
from typing import Any


@dataclass
class RawRecord:
    """One listing as returned by a competitor adapter, before normalisation.

    ``payload`` is the source's own JSON object for the listing and
    ``context`` carries enclosing data the listing needs to be understood
    (for Shopify documents: the product title, handle and option names).
    """

    competitor: str
    query_key: str
    payload: dict[str, Any]
    source_url: str = ""
    context: dict[str, Any] = field(
        default_factory=lambda: dict[str, Any]()
    )


@dataclass(frozen=True)
class Offer:
    """A normalised price/stock observation from one competitor listing."""

    competitor: str
    source_sku: str
    price: Decimal
    stock: int
    currency: str
    storage: str | None = None
    color: str | None = None
    condition: str | None = None
    title: str = ""
    query_key: str = ""
    source_url: str = ""
    raw: dict[str, Any] = field(
        default_factory=lambda: dict[str, Any](), compare=False, hash=False
    )
