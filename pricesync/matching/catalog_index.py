# pricesync/matching/catalog_index.py

"""Read-only in-memory view of the catalog and mapping collaborators."""

import logging
from collections import defaultdict

from pricesync.models.catalog import (
    CatalogProduct,
    CatalogVariant,
    VariantMapping,
    VariantRef,
)

logger = logging.getLogger("pricesync.matching")


def title_prefix(title: str, words: int = 3) -> str:
    """First ``words`` whitespace-delimited words of a title."""
    return " ".join(title.split()[:words])


class CatalogIndex:
    """Snapshot of products, variants and mappings taken once per run.

    Built before any worker starts and never mutated afterwards, so
    competitor workers can share it without locking.
    """

    def __init__(
        self,
        products: list[CatalogProduct],
        variants: list[CatalogVariant],
        mappings: list[VariantMapping],
    ) -> None:
        self.products = products
        self.variants = variants
        self.mappings = mappings

        self._variants_by_id: dict[int, CatalogVariant] = {
            v.id: v for v in variants if v.id is not None
        }
        self._products_by_external: dict[str, CatalogProduct] = {
            p.external_id: p for p in products
        }
        self._variants_by_external: dict[str, CatalogVariant] = {
            v.external_id: v for v in variants
        }
        self._variants_by_sku: dict[str, list[CatalogVariant]] = (
            defaultdict(list)
        )
        self._variants_by_product: dict[int, list[CatalogVariant]] = (
            defaultdict(list)
        )
        for variant in variants:
            if variant.sku:
                self._variants_by_sku[variant.sku].append(variant)
            if variant.product_id is not None:
                self._variants_by_product[variant.product_id].append(
                    variant
                )

        self._mappings: dict[tuple[str, str], VariantMapping] = {}
        for mapping in mappings:
            key = (mapping.competitor, mapping.competitor_sku)
            if key in self._mappings:
                logger.warning(
                    "Duplicate mapping for %s/%s, keeping the first",
                    mapping.competitor,
                    mapping.competitor_sku,
                )
                continue
            self._mappings[key] = mapping

        logger.debug(
            "Catalog index: %d products, %d variants, %d mappings",
            len(products),
            len(variants),
            len(self._mappings),
        )

    # ── Mapping collaborator ─────────────────────────────

    def lookup(self, competitor: str, source_sku: str) -> VariantRef | None:
        """Resolve an explicit operator mapping, if one exists."""
        mapping = self._mappings.get((competitor, source_sku))
        if mapping is None:
            return None
        product_id = mapping.product_id
        if product_id is None:
            variant = self._variants_by_id.get(mapping.variant_id)
            product_id = variant.product_id if variant else None
        return VariantRef(product_id=product_id, variant_id=mapping.variant_id)

    def competitor_skus(self, competitor: str) -> list[str]:
        """Mapped SKUs for one competitor, in mapping order."""
        return [
            m.competitor_sku for m in self.mappings
            if m.competitor == competitor and m.competitor_sku
        ]

    def competitor_handles(self, competitor: str) -> list[str]:
        """Product handles attached to one competitor's mappings."""
        return [
            m.product_handle for m in self.mappings
            if m.competitor == competitor and m.product_handle
        ]

    # ── Catalog collaborator ─────────────────────────────

    def product(self, external_id: str) -> CatalogProduct | None:
        return self._products_by_external.get(external_id)

    def variant(self, external_id: str) -> CatalogVariant | None:
        return self._variants_by_external.get(external_id)

    def variant_skus(self) -> list[str]:
        """Every non-empty internal variant SKU, in catalog order."""
        return [v.sku for v in self.variants if v.sku]

    def variants_with_sku(self, sku: str) -> list[CatalogVariant]:
        return list(self._variants_by_sku.get(sku, []))

    def products_matching_title(self, prefix: str) -> list[CatalogProduct]:
        """Products whose title contains ``prefix``, case-insensitively."""
        needle = prefix.strip().lower()
        if not needle:
            return []
        return [
            p for p in self.products
            if needle in p.title.lower()
        ]

    def variants_for_products(
        self, products: list[CatalogProduct],
    ) -> list[CatalogVariant]:
        result: list[CatalogVariant] = []
        for product in products:
            if product.id is not None:
                result.extend(self._variants_by_product.get(product.id, []))
        return result
