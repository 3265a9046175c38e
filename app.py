from fastapi import FastAPI, Depends, Query, Request
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException
from typing import Optional
import logging
import os
import httpx
from dotenv import load_dotenv
from contextlib import asynccontextmanager
from catalog_proxy.catalog_client import CatalogClient
from catalog_proxy.catalog_service import CatalogService
from catalog_proxy.config import Settings
from catalog_proxy.errors import ProxyError, LocalRateLimitError
from catalog_proxy.memory_cache import MemoryCache
from catalog_proxy.rate_governor import RateGovernor

if os.path.exists('.dev.env'):
    load_dotenv('.dev.env')

logger = logging.getLogger("catalog_proxy")

ENDPOINTS = {
    "search": "GET /api/search?query=YOUR_QUERY&category=All&sort=Relevance&limit=30&cursor=&paginated=false",
    "itemDetails": "GET /api/item/:assetId",
    "itemCatalog": "GET /api/item-catalog/:assetId",
    "popular": "GET /api/popular",
    "popularByCategory": "GET /api/popular/:category",
    "category": "GET /api/category/:category?limit=30",
    "health": "GET /health",
}

EXAMPLES = {
    "search": "/api/search?query=hat&limit=30",
    "itemDetails": "/api/item/102611803",
    "popular": "/api/popular",
    "category": "/api/category/Accessories?limit=10",
}


def create_app(
    settings: Optional[Settings] = None,
    transport: Optional[httpx.AsyncBaseTransport] = None,
) -> FastAPI:
    """
    Build the proxy application.

    Args:
        settings: Proxy settings (read from the environment when omitted)
        transport: Optional httpx transport for the upstream client

    Returns:
        FastAPI application
    """
    if settings is None:
        settings = Settings.from_env()

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        """Lifespan event handler - builds shared services once per process."""
        client = CatalogClient(
            catalog_base=settings.catalog_api_base,
            economy_base=settings.economy_api_base,
            timeout=settings.upstream_timeout_seconds,
            request_delay_ms=settings.upstream_delay_ms,
            transport=transport,
        )
        app.state.service = CatalogService(
            client=client,
            cache=MemoryCache(settings.cache_ttl_seconds, settings.cache_max_entries),
            governor=RateGovernor(settings.rate_limit_max_requests, settings.rate_limit_window_seconds),
            settings=settings,
        )
        logger.info("Catalog proxy ready (rate limit %d/%ds, cache ttl %ds)",
                    settings.rate_limit_max_requests, settings.rate_limit_window_seconds,
                    settings.cache_ttl_seconds)

        yield

        await client.close()

    app = FastAPI(
        title="catalog-proxy",
        description="Caching, rate-limited proxy for the Roblox catalog",
        version="1.0.0",
        lifespan=lifespan
    )

    @app.exception_handler(ProxyError)
    async def proxy_error_handler(_: Request, exc: ProxyError):
        headers = None
        if isinstance(exc, LocalRateLimitError):
            headers = {"Retry-After": str(exc.retry_after)}
        return JSONResponse(status_code=exc.http_status, content=exc.to_dict(), headers=headers)

    @app.exception_handler(StarletteHTTPException)
    async def http_error_handler(_: Request, exc: StarletteHTTPException):
        if exc.status_code == 404:
            return JSONResponse(
                status_code=404,
                content={"error": "Endpoint not found", "availableEndpoints": ENDPOINTS},
            )
        return JSONResponse(status_code=exc.status_code, content={"error": str(exc.detail)})

    @app.exception_handler(Exception)
    async def unexpected_error_handler(_: Request, exc: Exception):
        logger.exception("Unhandled error")
        return JSONResponse(
            status_code=500,
            content={"error": "Internal server error", "details": str(exc)},
        )

    def get_service(request: Request) -> CatalogService:
        return request.app.state.service

    @app.get("/")
    def read_root():
        return {
            "message": "Roblox Catalog Proxy Server",
            "version": app.version,
            "docs": "/docs",
            "endpoints": ENDPOINTS,
            "examples": EXAMPLES,
        }

    @app.get("/health")
    def health(service: CatalogService = Depends(get_service)) -> dict:
        return service.health()

    @app.get("/api/search")
    async def search(
        query: Optional[str] = Query(None, description="Search text"),
        category: str = Query("All", description="Catalog category"),
        sort: str = Query("Relevance", description="Sort order"),
        limit: Optional[str] = Query("30", description="Page size, one of 10, 28, 30"),
        cursor: Optional[str] = Query(None, description="Pagination cursor"),
        paginated: bool = Query(False, description="Return {items, nextCursor}"),
        service: CatalogService = Depends(get_service),
    ):
        """
        Search the catalog.

        Returns:
            List of items, or a page with the next cursor when paginated

        Raises:
            ValidationError: 400 if the query is required and blank
        """
        page = await service.search(query, category, sort, limit, cursor)
        if paginated:
            return page
        return page["items"]

    @app.get("/api/item/{asset_id}")
    async def get_item(asset_id: str, service: CatalogService = Depends(get_service)):
        return await service.get_item(asset_id)

    @app.get("/api/item-catalog/{asset_id}")
    async def get_catalog_item(asset_id: str, service: CatalogService = Depends(get_service)):
        return await service.get_catalog_item(asset_id)

    @app.get("/api/popular")
    async def popular(service: CatalogService = Depends(get_service)):
        return await service.popular()

    @app.get("/api/popular/{category}")
    async def popular_in_category(category: str, service: CatalogService = Depends(get_service)):
        return await service.popular(category)

    @app.get("/api/category/{category}")
    async def category_items(
        category: str,
        limit: Optional[str] = Query("30", description="Page size, one of 10, 28, 30"),
        service: CatalogService = Depends(get_service),
    ):
        return await service.category(category, limit)

    return app


_settings = Settings.from_env()

logging.basicConfig(
    level=_settings.log_level,
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)

app = create_app(_settings)


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(app, host="0.0.0.0", port=_settings.port)
