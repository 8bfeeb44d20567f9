# pricesync/scrapers/greengadgets_adapter.py

"""Adapter for shop.greengadgets.net.au via Shopify product documents."""

from typing import Any

from pricesync.errors import QueryKeyError
from pricesync.models.offer import RawRecord
from pricesync.scrapers.base_adapter import BaseAdapter


class GreenGadgetsAdapter(BaseAdapter):
    """Adapter for Green Gadgets' public Shopify storefront.

    Each product handle resolves to ``/products/<handle>.json``, one
    unauthenticated document holding every variant of the product.  A 404
    means the competitor does not carry the product and yields no records
    without an error.
    """

    def __init__(self) -> None:
        super().__init__("green-gadgets")
        self.base_url = self.settings.GREENGADGETS_BASE_URL.rstrip("/")

    def probe_url(self) -> str:
        return f"{self.base_url}/products.json?limit=1"

    def _product_url(self, handle: str) -> str:
        return f"{self.base_url}/products/{handle}.json"

    def _fetch_key(self, key: str) -> list[RawRecord]:
        """Fetch one product document and emit a record per variant."""
        resp = self._request(key, self._product_url(key))
        if resp.status_code == 404:
            self.logger.info(
                "[green-gadgets] Product %s not carried (404)", key
            )
            return []
        if resp.status_code != 200:
            raise QueryKeyError(key, f"HTTP {resp.status_code}")

        try:
            data: Any = resp.json()
        except ValueError:
            self.logger.warning(
                "[green-gadgets] Malformed JSON for %s", key
            )
            return []

        product = data.get("product") if isinstance(data, dict) else None
        if not isinstance(product, dict) or not isinstance(
            product.get("variants"), list
        ):
            self.logger.warning(
                "[green-gadgets] Invalid product structure for %s", key
            )
            return []

        handle = str(product.get("handle") or key)
        context: dict[str, Any] = {
            "handle": handle,
            "title": str(product.get("title") or ""),
            "vendor": product.get("vendor"),
            "product_type": product.get("product_type"),
            "options": [
                str(opt.get("name", ""))
                for opt in product.get("options") or []
                if isinstance(opt, dict)
            ],
        }

        records: list[RawRecord] = []
        for variant in product["variants"]:
            if not isinstance(variant, dict):
                continue
            records.append(
                RawRecord(
                    competitor=self.competitor,
                    query_key=key,
                    payload=variant,
                    source_url=(
                        f"{self.base_url}/products/{handle}"
                        f"?variant={variant.get('id', '')}"
                    ),
                    context=context,
                )
            )

        self.logger.info(
            "[green-gadgets] %s: %d variants", key, len(records)
        )
        return records
