"""
Stats cache — process-local TTL cache for aggregation results.

Read endpoints memoize their view models here; route handlers invalidate
the affected country once a mutation (action plans, scores, catalogue
changes) has been committed.
Entries computed for the synthetic Global country are dropped on any
invalidation since they span every country.

The aggregation functions themselves never touch this cache.
"""

import logging
import threading
import time

from opex.models.framework import GLOBAL_COUNTRY

logger = logging.getLogger(__name__)

# Cache key: (kind, country, level, language)
_stats_cache: dict[tuple[str, str | None, str | None, str], tuple[float, object]] = {}
_cache_lock = threading.Lock()
# Bumped by every invalidation; a compute that overlaps one is not stored
_generation = 0


def get_or_compute(key, ttl, compute):
    """Return the cached value for ``key`` or compute and store it.

    A ``ttl`` of 0 disables caching entirely. A value whose computation
    overlapped an invalidation is returned to the caller but not cached.
    """
    if ttl <= 0:
        return compute()

    with _cache_lock:
        entry = _stats_cache.get(key)
        if entry is not None:
            cached_at, value = entry
            if time.time() - cached_at <= ttl:
                return value
            del _stats_cache[key]
        started_at = _generation

    value = compute()
    with _cache_lock:
        if _generation == started_at:
            _stats_cache[key] = (time.time(), value)
    return value


def invalidate_country(country):
    """Drop entries for ``country``, Global entries, and country-less entries."""
    global _generation
    with _cache_lock:
        _generation += 1
        keys = [k for k in _stats_cache if k[1] in (country, GLOBAL_COUNTRY, None)]
        for k in keys:
            _stats_cache.pop(k, None)
    logger.debug("Stats cache invalidated for country=%s (%d entries)", country, len(keys))


def invalidate_all():
    global _generation
    with _cache_lock:
        _generation += 1
        _stats_cache.clear()
