# pricesync/normalizers/common.py

"""Value coercions shared by every competitor normaliser."""

import logging
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
from typing import Any

from pricesync.config.settings import Settings

logger = logging.getLogger("pricesync.normalizers")

_CENT = Decimal("0.01")


def parse_price(value: Any) -> Decimal | None:
    """Coerce a source price to a non-negative two-place Decimal.

    Accepts numbers and strings like ``"1,299.00"`` or ``"$899"``.
    Returns ``None`` for anything unparseable, non-finite or negative.
    """
    if value is None or isinstance(value, bool):
        return None
    text = str(value).strip().replace(",", "").lstrip("$").strip()
    if not text:
        return None
    try:
        price = Decimal(text)
    except InvalidOperation:
        return None
    if not price.is_finite() or price < 0:
        return None
    return price.quantize(_CENT, rounding=ROUND_HALF_UP)


def to_reporting_currency(
    price: Decimal, currency: str,
) -> Decimal | None:
    """Convert ``price`` into ``Settings.REPORTING_CURRENCY``.

    Returns ``None`` when no rate is configured for ``currency``.
    """
    rate = Settings.FX_RATES.get(currency.upper())
    if rate is None:
        logger.warning(
            "No FX rate configured for %s, offer dropped", currency
        )
        return None
    return (price * Decimal(rate)).quantize(_CENT, rounding=ROUND_HALF_UP)


def normalize_stock(value: Any) -> int:
    """Unify boolean, numeric and textual stock signals to an int >= 0."""
    if isinstance(value, bool):
        return 1 if value else 0
    if isinstance(value, (int, float)):
        return max(0, int(value))
    if isinstance(value, str) and value.strip().isdigit():
        return int(value.strip())
    return 0


def clean_text(value: Any) -> str | None:
    """Strip a structured attribute value; blanks become ``None``."""
    if value is None:
        return None
    text = str(value).strip()
    return text or None
