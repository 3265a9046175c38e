"""
Request handlers composing governor, cache, client and enrichment.
"""

import logging
import re
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Union

from catalog_proxy.catalog_client import CatalogClient, snap_limit, DEFAULT_LIMIT
from catalog_proxy.catalog_parser import (
    parse_asset_details,
    parse_popular_item,
    parse_search_page,
)
from catalog_proxy.config import Settings
from catalog_proxy.enrichment import enrich_prices
from catalog_proxy.errors import ValidationError
from catalog_proxy.memory_cache import MemoryCache, build_cache_key, cached
from catalog_proxy.rate_governor import RateGovernor

logger = logging.getLogger(__name__)

_ASSET_ID_RE = re.compile(r"\d+")


def parse_asset_id(raw: Union[str, int, None]) -> int:
    """
    Validate an asset id taken from the URL.

    Raises:
        ValidationError: Unless raw is a positive integer written in digits
    """
    text = "" if raw is None else str(raw).strip()
    if not _ASSET_ID_RE.fullmatch(text) or int(text) <= 0:
        raise ValidationError("Valid asset ID is required", details=f"Got {raw!r}")
    return int(text)


def _search_key(keyword, category, sort_type, limit, cursor) -> str:
    return build_cache_key("search", keyword, category, sort_type, cursor, limit)


class CatalogService:
    """
    Implements the proxy's operations.

    Each public operation validates its input, passes the rate governor,
    then serves from cache or goes upstream and caches the result.
    """

    def __init__(
        self,
        client: CatalogClient,
        cache: MemoryCache,
        governor: RateGovernor,
        settings: Settings,
    ):
        self.client = client
        self.cache = cache
        self.governor = governor
        self.settings = settings

    async def search(
        self,
        query: Optional[str],
        category: str = "All",
        sort: str = "Relevance",
        limit: Union[int, str, None] = DEFAULT_LIMIT,
        cursor: Optional[str] = None,
    ) -> Dict[str, Any]:
        """
        Search the catalog.

        Returns:
            Page payload {"items": [...], "nextCursor": ...}

        Raises:
            ValidationError: If a query is required and missing or blank
        """
        keyword = (query or "").strip()
        if not keyword and self.settings.require_search_query:
            raise ValidationError("Search query is required")

        self.governor.acquire()
        logger.info("Searching catalog for %r (category=%s, sort=%s)", keyword, category, sort)
        page = await self._load_search(keyword, category or "All", sort or "Relevance", snap_limit(limit), cursor or None)
        logger.info("Found %d items for %r", len(page["items"]), keyword)
        return page

    @cached(lambda self: self.cache, _search_key)
    async def _load_search(self, keyword, category, sort_type, limit, cursor) -> Dict[str, Any]:
        response = await self.client.search_items(keyword, category, sort_type, limit, cursor)
        page = parse_search_page(response)

        items = page.items
        if self.settings.enrich_prices and items:
            items = await enrich_prices(
                items,
                self.client.get_asset_details,
                concurrency=self.settings.enrich_concurrency,
            )

        return {
            "items": [item.model_dump(by_alias=True) for item in items],
            "nextCursor": page.next_cursor,
        }

    async def get_item(self, asset_id: Union[str, int]) -> Dict[str, Any]:
        """
        Get normalized details for one asset.

        Raises:
            ValidationError: If asset_id is not a positive integer
        """
        parsed_id = parse_asset_id(asset_id)
        self.governor.acquire()
        logger.info("Getting details for asset %s", parsed_id)
        return await self._load_item(parsed_id)

    @cached(lambda self: self.cache, lambda asset_id: build_cache_key("item", asset_id))
    async def _load_item(self, asset_id: int) -> Dict[str, Any]:
        response = await self.client.get_asset_details(asset_id)
        return parse_asset_details(response).model_dump(by_alias=True)

    async def get_catalog_item(self, asset_id: Union[str, int]) -> Any:
        """
        Get catalog details for one asset, untouched.

        Raises:
            ValidationError: If asset_id is not a positive integer
        """
        parsed_id = parse_asset_id(asset_id)
        self.governor.acquire()
        logger.info("Getting catalog details for asset %s", parsed_id)
        return await self._load_catalog_item(parsed_id)

    @cached(lambda self: self.cache, lambda asset_id: build_cache_key("item-catalog", asset_id))
    async def _load_catalog_item(self, asset_id: int) -> Any:
        return await self.client.get_catalog_item_details(asset_id)

    async def popular(self, category: str = "All") -> List[Dict[str, Any]]:
        """Most popular items, optionally within a category."""
        self.governor.acquire()
        logger.info("Getting popular items (category=%s)", category)
        return await self._load_listing(category or "All", "Popular", DEFAULT_LIMIT)

    async def category(self, category: str, limit: Union[int, str, None] = DEFAULT_LIMIT) -> List[Dict[str, Any]]:
        """Items of one category, in relevance order."""
        if not category or not category.strip():
            raise ValidationError("Category is required")

        self.governor.acquire()
        logger.info("Getting items for category %s", category)
        return await self._load_listing(category.strip(), "Relevance", snap_limit(limit))

    @cached(
        lambda self: self.cache,
        lambda category, sort_type, limit: build_cache_key("listing", category, sort_type, limit),
    )
    async def _load_listing(self, category: str, sort_type: str, limit: int) -> List[Dict[str, Any]]:
        response = await self.client.search_items(None, category, sort_type, limit)
        records = response.get("data") or []
        items = [parse_popular_item(r).model_dump(by_alias=True) for r in records if isinstance(r, dict)]
        logger.info("Found %d %s items in %s", len(items), sort_type.lower(), category)
        return items

    def health(self) -> Dict[str, Any]:
        """Liveness and rate window usage. Not rate limited."""
        return {
            "status": "OK",
            "message": "Catalog proxy is running",
            "rateLimit": self.governor.usage().model_dump(by_alias=True),
            "cacheEntries": len(self.cache),
            "timestamp": datetime.now(timezone.utc).isoformat(),
        }
