# pricesync/normalizers/greengadgets.py

"""Normaliser for Green Gadgets (Shopify) variant records."""

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

# Shopify option names mapped onto offer attributes
_OPTION_NAMES: dict[str, tuple[str, ...]] = {
    "storage": ("storage", "capacity", "memory"),
    "color": ("colour", "color"),
    "condition": ("condition", "grade"),
}

# Positional layout the storefront uses when option names are missing
_POSITIONAL = ("storage", "color", "condition")


def _structured_attributes(
    variant: dict[str, Any], option_names: list[str],
) -> dict[str, str | None]:
    """Read storage/color/condition from Shopify ``option1..3``."""
    values = [
        clean_text(variant.get(f"option{i}")) for i in (1, 2, 3)
    ]
    attrs: dict[str, str | None] = {
        "storage": None, "color": None, "condition": None,
    }
    if not option_names:
        for attr, value in zip(_POSITIONAL, values):
            attrs[attr] = value
        return attrs

    for name, value in zip(option_names, values):
        lowered = name.lower()
        for attr, aliases in _OPTION_NAMES.items():
            if any(alias in lowered for alias in aliases):
                attrs[attr] = value
                break
    return attrs


def normalize_greengadgets(record: RawRecord) -> Offer | None:
    """Map one Shopify variant (with its product context) to an Offer.

    Variants the storefront marks unavailable yield no offer.
    """
    variant = record.payload
    context = record.context

    if variant.get("available") is False:
        logger.debug(
            "Dropped green-gadgets variant %s: unavailable",
            variant.get("id"),
        )
        return None

    price = parse_price(variant.get("price"))
    if price is None:
        logger.debug(
            "Dropped green-gadgets variant %s: unparseable price %r",
            variant.get("id"),
            variant.get("price"),
        )
        return None
    currency = str(variant.get("price_currency") or _DEFAULT_CURRENCY)
    converted = to_reporting_currency(price, currency)
    if converted is None:
        return None

    if isinstance(variant.get("inventory_quantity"), int):
        stock = normalize_stock(variant["inventory_quantity"])
    else:
        stock = normalize_stock(variant.get("available"))

    product_title = str(context.get("title") or "")
    attrs = _structured_attributes(
        variant, list(context.get("options") or [])
    )
    free_text = f"{variant.get('title') or ''} {product_title}".strip()
    storage = attrs["storage"] or extract_storage(free_text)
    color = attrs["color"] or extract_color(free_text)
    condition = attrs["condition"] or extract_condition(free_text)

    return Offer(
        competitor=record.competitor,
        source_sku=clean_text(variant.get("sku")) or record.query_key,
        price=converted,
        stock=stock,
        currency=currency.upper(),
        storage=storage,
        color=color,
        condition=condition,
        title=product_title,
        query_key=record.query_key,
        source_url=record.source_url,
        raw={"variant": variant, "product": context},
    )
