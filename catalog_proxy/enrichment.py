"""
Per-item price enrichment for search results.
"""

import asyncio
import logging
from typing import Any, Awaitable, Callable, Dict, List, Sequence

from .catalog_parser import detailed_price
from .models import CatalogItem

logger = logging.getLogger(__name__)

DetailsFetcher = Callable[[int], Awaitable[Dict[str, Any]]]


async def enrich_prices(
    items: Sequence[CatalogItem],
    fetch_details: DetailsFetcher,
    concurrency: int = 8,
) -> List[CatalogItem]:
    """
    Replace each item's price with the detailed price from a secondary lookup.

    Lookups run concurrently, at most `concurrency` at a time. A failed or
    empty lookup leaves that item untouched; it never fails the batch.

    Args:
        items: Base items from the search response
        fetch_details: Coroutine returning the detail record for an asset id
        concurrency: Maximum lookups in flight

    Returns:
        Items in the original order
    """
    semaphore = asyncio.Semaphore(max(1, concurrency))

    async def _enrich(item: CatalogItem) -> CatalogItem:
        if item.asset_id is None:
            return item

        async with semaphore:
            try:
                details = await fetch_details(item.asset_id)
            except Exception as e:
                logger.warning("Price lookup failed for asset %s: %s", item.asset_id, e)
                return item

        price = detailed_price(details) if isinstance(details, dict) else None
        if price is None:
            return item
        return item.model_copy(update={"price": price})

    return list(await asyncio.gather(*(_enrich(item) for item in items)))
