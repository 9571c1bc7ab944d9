"""
Caching for schema metadata looked up by the strategies.

Uses cachetools TTLCache for automatic expiration.
"""
import functools
import logging
import threading

import cachetools

logger = logging.getLogger(__name__)


class Cache:
    """Cache manager for the datastore module.

    Thread-safe singleton that manages all TTL caches.
    """

    _instance = None
    _caches: dict[str, cachetools.TTLCache] = {}
    _lock = threading.RLock()

    @classmethod
    def get_instance(cls) -> 'Cache':
        """Get singleton instance."""
        if cls._instance is None:
            with cls._lock:
                if cls._instance is None:
                    cls._instance = cls()
        return cls._instance

    def get_cache(self, name: str, maxsize: int = 100, ttl: int = 300) -> cachetools.TTLCache:
        """Get or create a TTL cache with the given name.

        Args:
            name: Name of the cache
            maxsize: Maximum cache size
            ttl: Time-to-live in seconds

        Returns
            TTLCache instance
        """
        if name not in self._caches:
            with self._lock:
                if name not in self._caches:
                    self._caches[name] = cachetools.TTLCache(maxsize=maxsize, ttl=ttl)
        return self._caches[name]

    def clear_all(self) -> None:
        """Clear all managed caches."""
        with self._lock:
            for cache in self._caches.values():
                cache.clear()


def _create_cache_key(table_name: str, cn: object, method_args: tuple, method_kwargs: dict) -> str:
    """Create a deterministic cache key from arguments.

    The connection is represented by its engine URL so that adapters sharing
    a database share entries.
    """
    engine = getattr(cn, 'engine', None)
    location = str(getattr(engine, 'url', id(cn)))
    args_str = ':'.join(repr(arg) for arg in method_args)
    kwargs_str = ':'.join(f'{k}={v!r}' for k, v in sorted(method_kwargs.items()))
    return f'{table_name}:{location}:{args_str}:{kwargs_str}'.lower()


def cacheable_strategy(cache_name: str, ttl: int = 300, maxsize: int = 50):
    """Decorator for caching strategy method results.

    Caches results keyed by table name, connection location and method
    arguments. Respects bypass_cache parameter to skip cache lookup.

    Args:
        cache_name: Base name for the cache
        ttl: Time-to-live in seconds
        maxsize: Maximum cache size
    """
    def decorator(method):
        @functools.wraps(method)
        def wrapper(self, cn, table, *args, bypass_cache=False, **kwargs):
            if bypass_cache:
                logger.debug(f'Bypassing cache for {method.__name__}({table})')
                return method(self, cn, table, *args, **kwargs)

            specific_cache_name = f'{cache_name}_{self.__class__.__name__}'
            cache = Cache.get_instance().get_cache(specific_cache_name, ttl=ttl, maxsize=maxsize)
            cache_key = _create_cache_key(table, cn, args, kwargs)

            if cache_key in cache:
                logger.debug(f'Cache hit for {method.__name__}({table})')
                return cache[cache_key]

            logger.debug(f'Cache miss for {method.__name__}({table})')
            result = method(self, cn, table, *args, **kwargs)
            cache[cache_key] = result
            return result

        return wrapper
    return decorator
