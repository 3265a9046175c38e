"""
Catalog API response parser.
Converts catalog and economy API records to our Pydantic models.
"""

from typing import Dict, Any, Optional

from .models import CatalogItem, PopularItem, SearchPage

ITEM_TYPES = {
    2: "TShirt",
    11: "Shirt",
    12: "Pants",
    17: "Head",
    18: "Face",
    19: "Gear",
    27: "Hair",
    28: "Hat",
    29: "Package",
    30: "Bundle",
}


def item_type_for(asset_type_id: Any) -> str:
    """Map an asset type id to its display name, "Unknown" if unmapped."""
    try:
        return ITEM_TYPES.get(int(asset_type_id), "Unknown")
    except (TypeError, ValueError):
        return "Unknown"


def _price(value: Any) -> int:
    # Off-sale items come back with a null price
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return 0
    return int(value)


def parse_catalog_item(record: Dict[str, Any]) -> CatalogItem:
    """
    Parse one record of a catalog search response.

    Args:
        record: Entry of the search response "data" list

    Returns:
        CatalogItem model
    """
    asset_type_id = record.get("assetTypeId")
    return CatalogItem(
        asset_id=record.get("id"),
        name=record.get("name") or "",
        price=_price(record.get("price")),
        description=record.get("description"),
        product_id=record.get("productId"),
        asset_type_id=asset_type_id,
        creator=record.get("creatorName"),
        is_for_sale=bool(record.get("isForSale") or False),
        item_type=item_type_for(asset_type_id),
    )


def parse_popular_item(record: Dict[str, Any]) -> PopularItem:
    """Parse a catalog search record into the reduced listing shape."""
    return PopularItem(
        asset_id=record.get("id"),
        name=record.get("name") or "",
        price=_price(record.get("price")),
        description=record.get("description"),
        creator=record.get("creatorName"),
        item_type=item_type_for(record.get("assetTypeId")),
    )


def parse_asset_details(record: Dict[str, Any]) -> CatalogItem:
    """
    Parse an economy asset-details response.

    The economy API uses PascalCase keys and nests the creator.

    Args:
        record: Economy API response body

    Returns:
        CatalogItem model
    """
    creator = record.get("Creator") or {}
    asset_type_id = record.get("AssetTypeId")
    return CatalogItem(
        asset_id=record.get("AssetId"),
        name=record.get("Name") or "",
        price=_price(record.get("PriceInRobux")),
        description=record.get("Description"),
        product_id=record.get("ProductId"),
        asset_type_id=asset_type_id,
        creator=creator.get("Name") if isinstance(creator, dict) else None,
        is_for_sale=bool(record.get("IsForSale") or False),
        item_type=item_type_for(asset_type_id),
    )


def detailed_price(record: Dict[str, Any]) -> Optional[int]:
    """Return PriceInRobux from an economy record, None if absent."""
    value = record.get("PriceInRobux")
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return None
    return int(value)


def parse_search_page(response: Dict[str, Any]) -> SearchPage:
    """
    Parse a catalog search response into a page of items.

    Args:
        response: Search response body

    Returns:
        SearchPage, empty when the response carries no data
    """
    records = response.get("data") or []
    return SearchPage(
        items=[parse_catalog_item(r) for r in records if isinstance(r, dict)],
        next_cursor=response.get("nextPageCursor"),
    )
