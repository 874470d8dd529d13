"""
Listing Cache

Explicit, bounded cache for read-mostly listings of the examination engine.
Entries live in Django's cache backend (Redis in production, local memory in
development) with a TTL taken from settings. Invalidation works through a
generation counter: bumping the generation orphans every entry of the
namespace at once, and orphaned entries expire with their TTL.

Author: Exam Delivery Development Team
Version: 1.0.0
"""

import logging
from typing import Any, Callable

from django.conf import settings
from django.core.cache import cache
from django.core.exceptions import ImproperlyConfigured

logger = logging.getLogger(__name__)


class ListingCache:
    """
    Namespaced cache with TTL and an invalidation hook.

    Attributes:
        CACHE_PREFIX (str): Prefix for all cache keys
        DEFAULT_TIMEOUT (int): TTL in seconds when the setting is missing

    Example:
        >>> listing_cache = ListingCache("published_modules", "EXAMINATION_LISTING_CACHE_TTL")
        >>> listing_cache.get_or_set("all", build_listing)
        >>> listing_cache.invalidate()
    """

    CACHE_PREFIX = "examination"
    DEFAULT_TIMEOUT = 60

    def __init__(self, namespace: str, timeout_setting: str) -> None:
        self.namespace = namespace
        self.timeout_setting = timeout_setting
        self.logger = logger

    @property
    def timeout(self) -> int:
        """
        TTL in seconds, read from settings on every access.

        Raises:
            ImproperlyConfigured: If the configured TTL is not a positive integer
        """
        timeout = getattr(settings, self.timeout_setting, self.DEFAULT_TIMEOUT)
        if not isinstance(timeout, int) or isinstance(timeout, bool) or timeout <= 0:
            raise ImproperlyConfigured(
                f"{self.timeout_setting} must be a positive number of seconds, got {timeout!r}"
            )
        return timeout

    def _generation_key(self) -> str:
        return f"{self.CACHE_PREFIX}:{self.namespace}:generation"

    def _generation(self) -> int:
        generation = cache.get(self._generation_key())
        if generation is None:
            generation = 1
            cache.add(self._generation_key(), generation, timeout=None)
        return generation

    def _key(self, key: str) -> str:
        return f"{self.CACHE_PREFIX}:{self.namespace}:{self._generation()}:{key}"

    def get_or_set(self, key: str, builder: Callable[[], Any]) -> Any:
        """
        Return the cached value for ``key`` or build, store and return it.

        Args:
            key: Entry key within the namespace
            builder: Callable producing the value on a cache miss

        Returns:
            Cached or freshly built value
        """
        cache_key = self._key(key)
        value = cache.get(cache_key)
        if value is not None:
            self.logger.debug(f"Cache hit for {cache_key}")
            return value

        value = builder()
        cache.set(cache_key, value, timeout=self.timeout)
        self.logger.debug(f"Cached {cache_key} for {self.timeout}s")
        return value

    def invalidate(self) -> None:
        """Drop every entry of the namespace."""
        try:
            cache.incr(self._generation_key())
        except ValueError:
            cache.set(self._generation_key(), 2, timeout=None)
        self.logger.info(f"Invalidated cache namespace '{self.namespace}'")
