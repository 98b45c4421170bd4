"""Concrete data sources."""

from tcg_catalog.datasources.models import (
    Category,
    ExtendedData,
    Group,
    Printing,
    Product,
    ProductPriceSet,
    Sku,
    SkuPriceSet,
)
from tcg_catalog.datasources.tcgplayer import (
    ALL_PRODUCT_TYPES,
    MAX_IDS_IN_REQUEST,
    MAX_ITEMS_IN_RESPONSE,
    PRODUCT_TYPES_SEALED,
    PRODUCT_TYPES_SINGLES,
    CategoryId,
    TCGPlayerClient,
    chunked,
)

__all__ = [
    "ALL_PRODUCT_TYPES",
    "MAX_IDS_IN_REQUEST",
    "MAX_ITEMS_IN_RESPONSE",
    "PRODUCT_TYPES_SEALED",
    "PRODUCT_TYPES_SINGLES",
    "Category",
    "CategoryId",
    "ExtendedData",
    "Group",
    "Printing",
    "Product",
    "ProductPriceSet",
    "Sku",
    "SkuPriceSet",
    "TCGPlayerClient",
    "chunked",
]
