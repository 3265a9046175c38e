"""
Catalog data models returned by the proxy.
"""

from typing import Optional, List
from pydantic import BaseModel, Field


class CatalogItem(BaseModel):
    """Normalized catalog item."""
    asset_id: Optional[int] = Field(default=None, alias="assetId")
    name: str = ""
    price: int = 0
    description: Optional[str] = None
    product_id: Optional[int] = Field(default=None, alias="productId")
    asset_type_id: Optional[int] = Field(default=None, alias="assetTypeId")
    creator: Optional[str] = None
    is_for_sale: bool = Field(default=False, alias="isForSale")
    item_type: str = Field(default="Unknown", alias="itemType")

    class Config:
        populate_by_name = True
        frozen = True


class PopularItem(BaseModel):
    """Reduced item shape used by popular and category listings."""
    asset_id: Optional[int] = Field(default=None, alias="assetId")
    name: str = ""
    price: int = 0
    description: Optional[str] = None
    creator: Optional[str] = None
    item_type: str = Field(default="Unknown", alias="itemType")

    class Config:
        populate_by_name = True
        frozen = True


class SearchPage(BaseModel):
    """One page of search results."""
    items: List[CatalogItem] = []
    next_cursor: Optional[str] = Field(default=None, alias="nextCursor")

    class Config:
        populate_by_name = True


class RateUsage(BaseModel):
    """Snapshot of the current rate window."""
    requests: int
    limit: int
    window_seconds: int = Field(alias="windowSeconds")
    resets_in: int = Field(alias="resetsIn")

    class Config:
        populate_by_name = True
