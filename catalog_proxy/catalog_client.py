"""
Roblox catalog and economy API client.
"""

import asyncio
import logging
import httpx
from typing import Optional, Dict, Any, Union

from catalog_proxy.errors import (
    CatalogAPIError,
    ItemNotFoundError,
    UpstreamThrottledError,
    UpstreamTimeoutError,
)

logger = logging.getLogger(__name__)

# The search endpoint rejects every other page size
ALLOWED_LIMITS = (10, 28, 30)
DEFAULT_LIMIT = 30

_CATALOG_BASE = "https://catalog.roblox.com"
_ECONOMY_BASE = "https://economy.roblox.com"

_SEARCH_PATH = "/v1/search/items/details"
_CATALOG_ITEM_PATH = "/v1/catalog/items/{asset_id}/details"
_ASSET_DETAILS_PATH = "/v2/assets/{asset_id}/details"


def snap_limit(value: Union[int, str, None]) -> int:
    """
    Coerce a requested page size to one the upstream accepts.

    Returns the value itself when it is one of ALLOWED_LIMITS,
    DEFAULT_LIMIT otherwise.
    """
    try:
        requested = int(str(value).strip())
    except (TypeError, ValueError):
        return DEFAULT_LIMIT
    return requested if requested in ALLOWED_LIMITS else DEFAULT_LIMIT


def _error_message(response: httpx.Response) -> str:
    """Pull a readable message out of an upstream error body."""
    try:
        data = response.json()
    except ValueError:
        return response.text or "HTTP error"

    if isinstance(data, dict) and data.get("errors"):
        return ", ".join(
            e.get("message", str(e)) if isinstance(e, dict) else str(e)
            for e in data["errors"]
        )
    return response.text or "HTTP error"


class CatalogClient:
    """
    Async client for the public catalog and economy APIs.

    Every call waits a fixed delay before going out, carries its own
    timeout, and maps failures onto the proxy error types.
    """

    def __init__(
        self,
        catalog_base: str = _CATALOG_BASE,
        economy_base: str = _ECONOMY_BASE,
        timeout: float = 10.0,
        request_delay_ms: int = 0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        """
        Initialize catalog client.

        Args:
            catalog_base: Base URL of the catalog API
            economy_base: Base URL of the economy API
            timeout: Per-call timeout in seconds
            request_delay_ms: Fixed delay before each outbound call
            transport: Optional httpx transport (used by tests)
        """
        self.catalog_base = catalog_base.rstrip("/")
        self.economy_base = economy_base.rstrip("/")
        self.request_delay_ms = request_delay_ms
        self.timeout = timeout
        self.client = httpx.AsyncClient(timeout=timeout, transport=transport)

    async def close(self):
        """Close HTTP client."""
        await self.client.aclose()

    def _get_headers(self) -> Dict[str, str]:
        return {
            "accept": "application/json",
            "accept-encoding": "gzip",
            "accept-language": "en-US,en;q=0.9",
        }

    async def _fetch(self, url: str, params: Optional[Dict[str, Any]] = None) -> Any:
        """
        Fetch JSON from an upstream endpoint.

        Args:
            url: Full endpoint URL
            params: Query parameters

        Returns:
            Parsed JSON response

        Raises:
            UpstreamTimeoutError: On timeout
            UpstreamThrottledError: On upstream 429
            ItemNotFoundError: On upstream 404
            CatalogAPIError: On any other failure
        """
        if self.request_delay_ms > 0:
            await asyncio.sleep(self.request_delay_ms / 1000)

        try:
            # httpx timeouts are per phase; wait_for bounds the whole call
            response = await asyncio.wait_for(
                self.client.get(url, params=params, headers=self._get_headers()),
                timeout=self.timeout,
            )
        except (httpx.TimeoutException, asyncio.TimeoutError):
            logger.error("Upstream timeout: %s", url)
            raise UpstreamTimeoutError()
        except httpx.RequestError as e:
            logger.error("Upstream request error: %s: %s", url, e)
            raise CatalogAPIError(f"Request error: {str(e)}", None)

        if response.status_code == 429:
            logger.error("Upstream throttled: %s", url)
            raise UpstreamThrottledError()

        if response.status_code == 404:
            raise ItemNotFoundError()

        if response.is_error:
            message = _error_message(response)
            logger.error("Upstream error %s: %s: %s", response.status_code, url, message)
            raise CatalogAPIError(f"{response.status_code}: {message}", response.status_code)

        try:
            return response.json()
        except ValueError:
            raise CatalogAPIError("Upstream returned invalid JSON", response.status_code)

    async def search_items(
        self,
        keyword: Optional[str] = None,
        category: str = "All",
        sort_type: str = "Relevance",
        limit: Union[int, str, None] = DEFAULT_LIMIT,
        cursor: Optional[str] = None,
    ) -> Dict[str, Any]:
        """
        Search the catalog.

        Args:
            keyword: Search text, omitted upstream when blank
            category: Catalog category
            sort_type: Upstream sort order
            limit: Requested page size, snapped to ALLOWED_LIMITS
            cursor: Pagination cursor

        Returns:
            Search response from the catalog API
        """
        params: Dict[str, Any] = {
            "Category": category,
            "Limit": snap_limit(limit),
            "SortType": sort_type,
        }
        if keyword and keyword.strip():
            params["Keyword"] = keyword.strip()
        if cursor:
            params["Cursor"] = cursor

        return await self._fetch(f"{self.catalog_base}{_SEARCH_PATH}", params)

    async def get_asset_details(self, asset_id: int) -> Dict[str, Any]:
        """
        Get economy details (including PriceInRobux) for one asset.

        Args:
            asset_id: Asset ID

        Returns:
            Asset details from the economy API
        """
        url = f"{self.economy_base}{_ASSET_DETAILS_PATH.format(asset_id=asset_id)}"
        return await self._fetch(url)

    async def get_catalog_item_details(self, asset_id: int) -> Dict[str, Any]:
        """
        Get catalog details for one asset, as returned by the catalog API.

        Args:
            asset_id: Asset ID

        Returns:
            Raw item details
        """
        url = f"{self.catalog_base}{_CATALOG_ITEM_PATH.format(asset_id=asset_id)}"
        return await self._fetch(url)
