# tests/test_matcher.py

"""Tests for offer to variant matching."""

import unittest
from decimal import Decimal

from pricesync.matching.catalog_index import CatalogIndex, title_prefix
from pricesync.matching.matcher import Matcher, attribute_matches
from pricesync.models.catalog import (
    CatalogProduct,
    CatalogVariant,
    VariantMapping,
)
from pricesync.models.offer import Offer


def _offer(
    sku: str,
    competitor: str = "reebelo",
    title: str = "",
    **attrs: str,
) -> Offer:
    return Offer(
        competitor=competitor,
        source_sku=sku,
        price=Decimal("100.00"),
        stock=1,
        currency="AUD",
        title=title,
        storage=attrs.get("storage"),
        color=attrs.get("color"),
        condition=attrs.get("condition"),
    )


def _catalog(mappings: list[VariantMapping] | None = None) -> CatalogIndex:
    products = [
        CatalogProduct(
            id=1, external_id="p-1", title="Apple iPhone 13 Refurbished",
        ),
        CatalogProduct(
            id=2, external_id="p-2", title="Apple iPhone 12 Pro",
        ),
    ]
    variants = [
        CatalogVariant(
            id=10, external_id="v-10", product_external_id="p-1",
            product_id=1, sku="IP13-128", storage="128GB",
            color="Midnight", condition="Excellent",
        ),
        CatalogVariant(
            id=11, external_id="v-11", product_external_id="p-1",
            product_id=1, sku="IP13-128", storage="128GB",
            color="Starlight", condition="Excellent",
        ),
        CatalogVariant(
            id=42, external_id="v-42", product_external_id="p-1",
            product_id=1, sku="IP13-256", storage="256GB",
            color="Midnight", condition="Good",
        ),
        CatalogVariant(
            id=20, external_id="v-20", product_external_id="p-2",
            product_id=2, sku="IP12P-128", storage="128GB",
            color="Pacific Blue", condition="Excellent",
        ),
        CatalogVariant(
            id=21, external_id="v-21", product_external_id="p-2",
            product_id=2, sku="IP12P-256", storage="256GB",
            color="Graphite", condition="Good",
        ),
    ]
    return CatalogIndex(products, variants, mappings or [])


class TestAttributeMatches(unittest.TestCase):
    """Containment either way, ignoring case; absent offer side passes."""

    def test_absent_offer_value_matches(self) -> None:
        self.assertTrue(attribute_matches(None, "Midnight"))

    def test_containment_both_directions(self) -> None:
        self.assertTrue(attribute_matches("midnight", "Midnight Green"))
        self.assertTrue(attribute_matches("Space Grey Excellent", "grey"))

    def test_mismatch(self) -> None:
        self.assertFalse(attribute_matches("128GB", "256GB"))


class TestMatcher(unittest.TestCase):
    """Precedence, ambiguity and fallback rules."""

    def test_explicit_mapping_beats_sku_candidate(self) -> None:
        """A mapping wins even when a SKU candidate disagrees."""
        catalog = _catalog([
            VariantMapping(
                competitor="reebelo", competitor_sku="IP13-256",
                variant_id=10,
            ),
        ])
        result = Matcher(catalog).match(_offer("IP13-256"))

        self.assertTrue(result.matched)
        self.assertEqual(result.variant_id, 10)
        self.assertEqual(result.product_id, 1)
        self.assertEqual(result.method, "mapping")

    def test_mapping_is_per_competitor(self) -> None:
        catalog = _catalog([
            VariantMapping(
                competitor="green-gadgets", competitor_sku="IP13-256",
                variant_id=10,
            ),
        ])
        result = Matcher(catalog).match(_offer("IP13-256"))

        self.assertEqual(result.variant_id, 42)
        self.assertEqual(result.method, "sku")

    def test_sku_with_attribute_filter(self) -> None:
        result = Matcher(_catalog()).match(
            _offer("IP13-128", color="Starlight"),
        )
        self.assertEqual(result.variant_id, 11)

    def test_ambiguous_when_color_missing(self) -> None:
        """Two variants differing only in color, offer without color."""
        result = Matcher(_catalog()).match(
            _offer("IP13-128", storage="128GB", condition="Excellent"),
        )

        self.assertFalse(result.matched)
        self.assertIsNone(result.variant_id)
        self.assertEqual(result.reason, "ambiguous")

    def test_attribute_mismatch(self) -> None:
        result = Matcher(_catalog()).match(
            _offer("IP13-256", storage="512GB"),
        )
        self.assertEqual(result.reason, "no_attribute_match")

    def test_unknown_sku_has_no_candidates(self) -> None:
        result = Matcher(_catalog()).match(_offer("NOPE"))
        self.assertEqual(result.reason, "no_candidates")

    def test_title_fallback_for_handle_competitors(self) -> None:
        matcher = Matcher(
            _catalog(), title_fallback=frozenset({"green-gadgets"}),
        )
        result = matcher.match(
            _offer(
                "GG-1",
                competitor="green-gadgets",
                title="Apple iPhone 12 Pro Max Deal",
                storage="256GB",
                color="Graphite",
            ),
        )

        self.assertEqual(result.variant_id, 21)
        self.assertEqual(result.method, "title")

    def test_no_title_fallback_for_sku_competitors(self) -> None:
        result = Matcher(_catalog()).match(
            _offer("GG-1", title="Apple iPhone 12 Pro", storage="256GB"),
        )
        self.assertEqual(result.reason, "no_candidates")

    def test_match_all_keeps_unmatched(self) -> None:
        results = Matcher(_catalog()).match_all(
            [_offer("IP13-256"), _offer("NOPE")],
        )
        self.assertEqual(len(results), 2)
        self.assertEqual([r.matched for r in results], [True, False])


class TestTitlePrefix(unittest.TestCase):

    def test_first_three_words(self) -> None:
        self.assertEqual(
            title_prefix("Apple  iPhone 12 Pro Max"), "Apple iPhone 12",
        )


if __name__ == "__main__":
    unittest.main()
