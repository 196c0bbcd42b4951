"""
Caching utilities.

CacheService wraps Django's cache (django-redis in production, locmem in
tests) with consistent key templates, tag-based invalidation, pattern
clearing and the hit/miss counters reported by /v1/performance/cache.
"""
import fnmatch
import logging
import threading
import time
from typing import Any, Callable, Iterable, Optional

from django.core.cache import cache

logger = logging.getLogger(__name__)


class CacheKeys:
    """Cache key templates."""

    TENANT_USER_SCOPES = "scopes:tenant_user:{tenant_user_id}"
    TENANT_DETAIL = "tenant:detail:{tenant_id}"
    CRM_DASHBOARD = "crm:dashboard:{tenant_id}"
    HR_DASHBOARD = "hr:dashboard:{tenant_id}"
    SYSTEM_STATS = "admin:system:stats"

    # Internal bookkeeping
    REGISTRY = "cache:registry"
    TAG = "cache:tag:{tag}"
    HEALTH_CHECK = "cache:health:check"

    @classmethod
    def format(cls, key_template: str, **kwargs) -> str:
        return key_template.format(**kwargs)


class CacheTTL:
    """TTL constants in seconds."""
    RBAC_SCOPES = 300
    TENANT = 3600
    DASHBOARD = 60
    SYSTEM_STATS = 60
    DEFAULT = 300
    REGISTRY = 24 * 3600


class CacheMetrics:
    """Process-local counters for cache operations."""

    _lock = threading.Lock()
    _counters = {'hits': 0, 'misses': 0, 'sets': 0, 'deletes': 0, 'errors': 0}

    @classmethod
    def incr(cls, name: str):
        with cls._lock:
            cls._counters[name] = cls._counters.get(name, 0) + 1

    @classmethod
    def snapshot(cls) -> dict:
        with cls._lock:
            data = dict(cls._counters)
        lookups = data['hits'] + data['misses']
        data['total_requests'] = lookups
        data['hit_rate'] = round(data['hits'] / lookups, 4) if lookups else 0.0
        return data

    @classmethod
    def reset(cls):
        with cls._lock:
            for key in cls._counters:
                cls._counters[key] = 0


class CacheService:
    """Cache access with metrics, tags and pattern clearing."""

    @staticmethod
    def get(key: str, default: Any = None) -> Any:
        try:
            value = cache.get(key)
        except Exception as e:
            CacheMetrics.incr('errors')
            logger.error(f"Cache get error for key {key}: {e}")
            return default

        if value is None:
            CacheMetrics.incr('misses')
            logger.debug(f"Cache MISS: {key}")
            return default

        CacheMetrics.incr('hits')
        logger.debug(f"Cache HIT: {key}")
        return value

    @staticmethod
    def set(key: str, value: Any, ttl: Optional[int] = None, tags: Iterable[str] = ()) -> bool:
        """
        Store a value.

        Args:
            key: Cache key
            value: Any picklable value
            ttl: Seconds to live; None uses the backend default
            tags: Tag names this key can later be invalidated by
        """
        try:
            cache.set(key, value, timeout=ttl if ttl is not None else CacheTTL.DEFAULT)
        except Exception as e:
            CacheMetrics.incr('errors')
            logger.error(f"Cache set error for key {key}: {e}")
            return False

        CacheMetrics.incr('sets')
        CacheService._register(CacheKeys.REGISTRY, key)
        for tag in tags:
            CacheService._register(CacheKeys.format(CacheKeys.TAG, tag=tag), key)
        logger.debug(f"Cache SET: {key} (TTL: {ttl}s)")
        return True

    @staticmethod
    def delete(key: str) -> bool:
        try:
            existed = cache.delete(key)
        except Exception as e:
            CacheMetrics.incr('errors')
            logger.error(f"Cache delete error for key {key}: {e}")
            return False
        CacheMetrics.incr('deletes')
        return bool(existed)

    @staticmethod
    def exists(key: str) -> bool:
        try:
            return cache.has_key(key)
        except Exception as e:
            CacheMetrics.incr('errors')
            logger.error(f"Cache exists error for key {key}: {e}")
            return False

    @staticmethod
    def get_or_set(key: str, default_func: Callable[[], Any], ttl: Optional[int] = None) -> Any:
        value = CacheService.get(key)
        if value is None:
            value = default_func()
            if value is not None:
                CacheService.set(key, value, ttl)
        return value

    @staticmethod
    def clear(pattern: Optional[str] = None) -> int:
        """
        Remove keys matching a glob pattern, or everything when pattern is None.

        Returns:
            Number of keys removed (for a full clear, the number of keys
            CacheService knew about).
        """
        registry = set(cache.get(CacheKeys.REGISTRY) or ())

        if not pattern:
            cache.clear()
            logger.info("Cache cleared")
            return len(registry)

        if hasattr(cache, 'delete_pattern'):
            removed = cache.delete_pattern(pattern) or 0
        else:
            matched = [key for key in registry if fnmatch.fnmatch(key, pattern)]
            cache.delete_many(matched)
            removed = len(matched)

        cache.set(
            CacheKeys.REGISTRY,
            [key for key in registry if not fnmatch.fnmatch(key, pattern)],
            timeout=CacheTTL.REGISTRY,
        )
        logger.info(f"Cache cleared by pattern {pattern}: {removed} keys")
        return removed

    @staticmethod
    def invalidate_by_tag(tag: str) -> int:
        tag_key = CacheKeys.format(CacheKeys.TAG, tag=tag)
        keys = list(cache.get(tag_key) or ())
        if keys:
            cache.delete_many(keys)
        cache.delete(tag_key)
        logger.info(f"Invalidated {len(keys)} cache keys for tag {tag}")
        return len(keys)

    @staticmethod
    def health_check() -> dict:
        """Round-trip a marker value and report latency."""
        started = time.monotonic()
        try:
            cache.set(CacheKeys.HEALTH_CHECK, 'ok', timeout=10)
            healthy = cache.get(CacheKeys.HEALTH_CHECK) == 'ok'
        except Exception as e:
            logger.error(f"Cache health check failed: {e}")
            healthy = False
        latency_ms = round((time.monotonic() - started) * 1000, 2)

        return {
            'status': 'healthy' if healthy else 'unhealthy',
            'latency_ms': latency_ms,
            'backend': f"{cache.__class__.__module__}.{cache.__class__.__name__}",
        }

    @staticmethod
    def metrics() -> dict:
        return CacheMetrics.snapshot()

    @staticmethod
    def reset_metrics():
        CacheMetrics.reset()

    @staticmethod
    def _register(index_key: str, key: str):
        try:
            keys = cache.get(index_key) or []
            if key not in keys:
                keys.append(key)
                cache.set(index_key, keys, timeout=CacheTTL.REGISTRY)
        except Exception as e:
            logger.warning(f"Could not index cache key {key}: {e}")
