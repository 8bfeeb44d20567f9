# pricesync/normalizers/reebelo.py

"""Normaliser for Reebelo offer records."""

import logging
from typing import Any

from pricesync.models.offer import Offer, RawRecord
from pricesync.normalizers.attributes import (
    extract_color,
    extract_condition,
    extract_storage,
)
from pricesync.normalizers.common import (
    clean_text,
    normalize_stock,
    parse_price,
    to_reporting_currency,
)

logger = logging.getLogger("pricesync.normalizers")

_DEFAULT_CURRENCY = "AUD"


def normalize_reebelo(record: RawRecord) -> Offer | None:
    """Map one ``publishedOffers`` entry to an :class:`Offer`.

    Reebelo structures storage, color and condition under
    ``reebeloOffer.attributes``; those are passed through.  Missing ones
    are extracted from the listing title when one is present.
    """
    payload = record.payload
    listing: Any = payload.get("reebeloOffer") or {}
    if not isinstance(listing, dict):
        logger.debug(
            "Dropped reebelo offer for %s: malformed listing %r",
            record.query_key,
            listing,
        )
        return None
    attrs: Any = listing.get("attributes") or {}
    if not isinstance(attrs, dict):
        attrs = {}

    price = parse_price(payload.get("price"))
    if price is None:
        logger.debug(
            "Dropped reebelo offer for %s: unparseable price %r",
            record.query_key,
            payload.get("price"),
        )
        return None
    currency = str(payload.get("currency") or _DEFAULT_CURRENCY)
    converted = to_reporting_currency(price, currency)
    if converted is None:
        return None

    title = str(payload.get("title") or listing.get("title") or "")
    storage = clean_text(attrs.get("storage")) or extract_storage(title)
    color = clean_text(attrs.get("color")) or extract_color(title)
    condition = (
        clean_text(attrs.get("condition")) or extract_condition(title)
    )

    return Offer(
        competitor=record.competitor,
        source_sku=record.query_key,
        price=converted,
        stock=normalize_stock(listing.get("stock")),
        currency=currency.upper(),
        storage=storage,
        color=color,
        condition=condition,
        title=title,
        query_key=record.query_key,
        source_url=record.source_url,
        raw=payload,
    )
