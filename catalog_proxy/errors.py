"""
Error taxonomy for the catalog proxy.

Every error knows the HTTP status it maps to and how to render itself
as a JSON body, so the FastAPI exception handler stays generic.
"""

from typing import Any, Dict, Optional


class ProxyError(Exception):
    """Base class for all errors surfaced to API callers."""
    http_status = 500
    error = "Internal server error"

    def __init__(self, message: Optional[str] = None, details: Optional[str] = None):
        super().__init__(message or self.error)
        self.message = message
        self.details = details

    def to_dict(self) -> Dict[str, Any]:
        body: Dict[str, Any] = {"error": self.error}
        if self.message:
            body["message"] = self.message
        if self.details:
            body["details"] = self.details
        return body


class ValidationError(ProxyError):
    """Missing or malformed request input."""
    http_status = 400
    error = "Invalid request"


class LocalRateLimitError(ProxyError):
    """The proxy's own rate governor refused the request."""
    http_status = 429
    error = "Rate limit exceeded"

    def __init__(self, retry_after: int):
        super().__init__(f"Too many requests. Try again in {retry_after} seconds.")
        self.retry_after = retry_after

    def to_dict(self) -> Dict[str, Any]:
        body = super().to_dict()
        body["retryAfter"] = self.retry_after
        return body


class CatalogAPIError(ProxyError):
    """Upstream catalog API error."""
    http_status = 500
    error = "Upstream request failed"

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message, details=message)
        self.status_code = status_code


class UpstreamThrottledError(CatalogAPIError):
    """Upstream API rate limit exceeded."""
    http_status = 429
    error = "Upstream throttled"

    def __init__(self, message: str = "Upstream API is throttling requests. Please try again later."):
        super().__init__(message, 429)


class ItemNotFoundError(CatalogAPIError):
    """Upstream API reported the item as missing."""
    http_status = 404
    error = "Item not found"

    def __init__(self, message: str = "Item not found"):
        super().__init__(message, 404)


class UpstreamTimeoutError(CatalogAPIError):
    """Upstream API did not answer before the deadline."""
    http_status = 408
    error = "Request timeout"

    def __init__(self, message: str = "Upstream API is slow to respond"):
        super().__init__(message, None)
