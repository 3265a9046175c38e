"""
Runtime configuration read from environment variables.
"""

import os
from dataclasses import dataclass
from typing import Mapping, Optional

_TRUTHY = {"1", "true", "yes", "on"}


def _get_int(env: Mapping[str, str], name: str, default: int) -> int:
    raw = env.get(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        return int(raw)
    except ValueError:
        raise ValueError(f"{name} must be an integer, got {raw!r}")


def _get_float(env: Mapping[str, str], name: str, default: float) -> float:
    raw = env.get(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        return float(raw)
    except ValueError:
        raise ValueError(f"{name} must be a number, got {raw!r}")


def _get_bool(env: Mapping[str, str], name: str, default: bool) -> bool:
    raw = env.get(name)
    if raw is None or raw.strip() == "":
        return default
    return raw.strip().lower() in _TRUTHY


@dataclass(frozen=True)
class Settings:
    """Proxy settings. Every field has a default so an empty environment works."""
    catalog_api_base: str = "https://catalog.roblox.com"
    economy_api_base: str = "https://economy.roblox.com"
    rate_limit_max_requests: int = 10
    rate_limit_window_seconds: int = 60
    cache_ttl_seconds: int = 300
    cache_max_entries: int = 0
    upstream_delay_ms: int = 0
    upstream_timeout_seconds: float = 10.0
    require_search_query: bool = True
    enrich_prices: bool = True
    enrich_concurrency: int = 8
    log_level: str = "INFO"
    port: int = 3000

    @classmethod
    def from_env(cls, env: Optional[Mapping[str, str]] = None) -> "Settings":
        """
        Build settings from environment variables.

        Args:
            env: Mapping to read from (defaults to os.environ)

        Raises:
            ValueError: If a numeric variable cannot be parsed
        """
        if env is None:
            env = os.environ

        return cls(
            catalog_api_base=env.get("CATALOG_API_BASE", cls.catalog_api_base).rstrip("/"),
            economy_api_base=env.get("ECONOMY_API_BASE", cls.economy_api_base).rstrip("/"),
            rate_limit_max_requests=_get_int(env, "RATE_LIMIT_MAX_REQUESTS", cls.rate_limit_max_requests),
            rate_limit_window_seconds=_get_int(env, "RATE_LIMIT_WINDOW_SECONDS", cls.rate_limit_window_seconds),
            cache_ttl_seconds=_get_int(env, "CACHE_TTL_SECONDS", cls.cache_ttl_seconds),
            cache_max_entries=_get_int(env, "CACHE_MAX_ENTRIES", cls.cache_max_entries),
            upstream_delay_ms=_get_int(env, "UPSTREAM_DELAY_MS", cls.upstream_delay_ms),
            upstream_timeout_seconds=_get_float(env, "UPSTREAM_TIMEOUT_SECONDS", cls.upstream_timeout_seconds),
            require_search_query=_get_bool(env, "REQUIRE_SEARCH_QUERY", cls.require_search_query),
            enrich_prices=_get_bool(env, "ENRICH_PRICES", cls.enrich_prices),
            enrich_concurrency=_get_int(env, "ENRICH_CONCURRENCY", cls.enrich_concurrency),
            log_level=env.get("LOG_LEVEL", cls.log_level).upper(),
            port=_get_int(env, "PORT", cls.port),
        )
