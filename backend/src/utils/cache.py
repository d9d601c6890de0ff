"""Caching utilities for the Ekami Auto API."""

import copy
import hashlib
import json
from functools import wraps
from typing import Callable

from cachetools import TTLCache

# Global caches - persist across Lambda invocations (warm starts)
CACHE_TTL_SECONDS = 300  # 5 minutes for catalogue data
CACHE_TTL_LONG_SECONDS = 3600  # 1 hour for loyalty program configuration
_service_packages_cache: TTLCache = TTLCache(maxsize=16, ttl=CACHE_TTL_SECONDS)
_loyalty_catalog_cache: TTLCache = TTLCache(maxsize=16, ttl=CACHE_TTL_LONG_SECONDS)


def get_cache_key(*args, **kwargs) -> str:
    """Generate a cache key from function arguments."""
    key_data = json.dumps({"args": args, "kwargs": kwargs}, sort_keys=True, default=str)
    # MD5 is used here only for cache key generation, not for security purposes
    return hashlib.md5(key_data.encode(), usedforsecurity=False).hexdigest()


def _ttl_cached(cache: TTLCache) -> Callable:
    def decorator(func: Callable) -> Callable:
        @wraps(func)
        def wrapper(*args, **kwargs):
            # Instances reading the same tables share an entry; ``cache_scope``
            # names those tables
            scope = getattr(args[0], "cache_scope", None) if args else None
            cache_key = func.__qualname__ + get_cache_key(scope, *args[1:], **kwargs)
            try:
                result = cache[cache_key]
            except KeyError:
                result = cache[cache_key] = func(*args, **kwargs)
            # Hand out a copy; the cached entry stays as loaded
            return copy.deepcopy(result)

        return wrapper

    return decorator


cached_service_packages = _ttl_cached(_service_packages_cache)
cached_service_packages.__doc__ = "Cache decorator for the service package catalogue (5-minute TTL)."

cached_loyalty_catalog = _ttl_cached(_loyalty_catalog_cache)
cached_loyalty_catalog.__doc__ = "Cache decorator for loyalty tiers and rewards (1-hour TTL)."


def clear_all_caches() -> None:
    """Clear all caches. Useful for testing."""
    _service_packages_cache.clear()
    _loyalty_catalog_cache.clear()


# Cache-Control header values
CACHE_CONTROL_PUBLIC = "public, max-age=300"  # Catalogue data, cacheable by any cache
CACHE_CONTROL_PRIVATE = "private, no-cache"  # User-specific data, no caching
