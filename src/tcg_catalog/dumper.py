"""
Category dump: one category's details, all of its groups and all of its
products, gathered into a single snapshot.

Baseline calls (category details, totals, group pages) abort the dump on
failure. Product pages are fetched concurrently and a failing page only leaves
a gap, reported through CategorySnapshot.failed_offsets.
"""
import asyncio
import logging
from dataclasses import dataclass, field
from typing import Any, Optional, Sequence

from tcg_catalog.core import ApiError, fetch_all, page_offsets, sort_by_key
from tcg_catalog.datasources import (
    ALL_PRODUCT_TYPES,
    MAX_ITEMS_IN_RESPONSE,
    Category,
    Group,
    Product,
    TCGPlayerClient,
)

logger = logging.getLogger(__name__)


@dataclass
class CategorySnapshot:
    """Everything dumped for one category."""

    category: Category
    groups: list[Group] = field(default_factory=list)
    products: list[Product] = field(default_factory=list)
    total_products: int = 0
    failed_offsets: list[int] = field(default_factory=list)

    @property
    def complete(self) -> bool:
        return not self.failed_offsets and len(self.products) >= self.total_products

    def to_dict(self) -> dict[str, Any]:
        """JSON document layout written by the dump command."""
        return {
            "category": self.category.to_dict(),
            "groups": [g.to_dict() for g in self.groups],
            "products": [p.to_dict() for p in self.products],
        }


async def list_groups(client: TCGPlayerClient, category_id: int) -> list[Group]:
    """Fetch every group of a category, one page at a time; any failure propagates."""
    total = await client.total_groups(category_id)
    groups: list[Group] = []
    for offset in page_offsets(total, MAX_ITEMS_IN_RESPONSE):
        groups.extend(await client.list_all_category_groups(category_id, offset))
    return groups


async def dump_category(
    client: TCGPlayerClient,
    category_id: int,
    workers: int = 8,
    product_types: Optional[Sequence[str]] = None,
    include_skus: bool = True,
    cancel: Optional[asyncio.Event] = None,
) -> CategorySnapshot:
    """
    Build a full snapshot of a category.

    Args:
        client: Open API client
        category_id: Category to dump
        workers: Concurrent product page fetches
        product_types: Product types to include (defaults to all of them)
        include_skus: Whether products carry their SKUs
        cancel: Optional event; once set, no more product pages are requested

    Returns:
        CategorySnapshot with products sorted by product id

    Raises:
        ApiError: If the category does not exist or a baseline call fails
        TCGPlayerError: Any other failure of a baseline call
    """
    types = list(product_types) if product_types is not None else ALL_PRODUCT_TYPES

    categories = await client.get_categories_details([category_id])
    if not categories:
        raise ApiError([f"category {category_id} not found"])
    logger.info("Retrieved category details")

    groups = await list_groups(client, category_id)
    logger.info(f"Found {len(groups)} groups")

    total_products = await client.total_products(category_id, types)
    logger.info(f"Found {total_products} products")

    async def fetch_products(offset: int) -> list[Product]:
        return await client.list_all_products(category_id, types, include_skus, offset, cancel=cancel)

    result = await fetch_all(
        total_items=total_products,
        page_size=MAX_ITEMS_IN_RESPONSE,
        worker_count=workers,
        fetch_page=fetch_products,
        cancel=cancel,
    )

    if not result.complete:
        logger.warning(
            f"{len(result.failed_offsets)} product page(s) failed and "
            f"{len(result.skipped_offsets)} were not requested; "
            f"got {len(result.items)} of {total_products} products"
        )

    return CategorySnapshot(
        category=categories[0],
        groups=groups,
        products=sort_by_key(result.items, key=lambda p: p.product_id),
        total_products=total_products,
        failed_offsets=result.failed_offsets + result.skipped_offsets,
    )
