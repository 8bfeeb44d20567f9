# pricesync/models/catalog.py

"""Internal catalog models mirrored from the merchant's store."""

from dataclasses import dataclass


@dataclass
class CatalogProduct:
    """A merchant product as mirrored into the local store."""

    external_id: str
    title: str
    vendor: str | None = None
    product_type: str | None = None
    id: int | None = None


@dataclass
class CatalogVariant:
    """One purchasable SKU-level unit of a catalog product."""

    external_id: str
    product_external_id: str
    sku: str | None = None
    storage: str | None = None
    color: str | None = None
    condition: str | None = None
    id: int | None = None
    product_id: int | None = None


@dataclass(frozen=True)
class VariantMapping:
    """Operator-curated link from a competitor SKU to an internal variant."""

    competitor: str
    competitor_sku: str
    variant_id: int
    product_id: int | None = None
    product_handle: str | None = None


@dataclass(frozen=True)
class VariantRef:
    """Internal identity an offer resolves to."""

    product_id: int | None
    variant_id: int
