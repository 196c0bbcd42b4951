"""
Tests for caching utilities.
"""
from apps.core.cache import CacheKeys, CacheService


class TestCacheService:
    """Test CacheService basic operations."""

    def test_get_set(self):
        assert CacheService.set('test:key', {'data': 'test'}, ttl=60) is True
        assert CacheService.get('test:key') == {'data': 'test'}

    def test_get_default(self):
        assert CacheService.get('nonexistent:key', default='fallback') == 'fallback'

    def test_delete(self):
        CacheService.set('test:key', 'value')

        assert CacheService.delete('test:key') is True
        assert CacheService.get('test:key') is None
        assert CacheService.exists('test:key') is False

    def test_get_or_set(self):
        calls = []

        def compute():
            calls.append(1)
            return 'computed'

        assert CacheService.get_or_set('test:key', compute) == 'computed'
        assert CacheService.get_or_set('test:key', compute) == 'computed'
        assert len(calls) == 1

    def test_key_format(self):
        key = CacheKeys.format(CacheKeys.CRM_DASHBOARD, tenant_id='abc')
        assert key == 'crm:dashboard:abc'


class TestCacheInvalidation:

    def test_clear_by_pattern(self):
        CacheService.set('crm:dashboard:1', 1)
        CacheService.set('crm:dashboard:2', 2)
        CacheService.set('hr:dashboard:1', 3)

        assert CacheService.clear('crm:*') == 2

        assert CacheService.get('crm:dashboard:1') is None
        assert CacheService.get('hr:dashboard:1') == 3

    def test_clear_everything(self):
        CacheService.set('a', 1)
        CacheService.set('b', 2)

        assert CacheService.clear() == 2
        assert CacheService.get('a') is None

    def test_invalidate_by_tag(self):
        CacheService.set('scopes:1', ['crm:view'], tags=['tenant:t1'])
        CacheService.set('scopes:2', ['crm:view'], tags=['tenant:t1'])
        CacheService.set('scopes:3', ['crm:view'], tags=['tenant:t2'])

        assert CacheService.invalidate_by_tag('tenant:t1') == 2

        assert CacheService.get('scopes:1') is None
        assert CacheService.get('scopes:3') == ['crm:view']
        assert CacheService.invalidate_by_tag('tenant:t1') == 0


class TestCacheMetrics:

    def test_hits_and_misses(self):
        CacheService.get('missing')
        CacheService.set('present', 1)
        CacheService.get('present')
        CacheService.get('present')

        metrics = CacheService.metrics()

        assert metrics['hits'] == 2
        assert metrics['misses'] == 1
        assert metrics['sets'] == 1
        assert metrics['total_requests'] == 3
        assert metrics['hit_rate'] == round(2 / 3, 4)

    def test_reset(self):
        CacheService.get('missing')
        CacheService.reset_metrics()

        assert CacheService.metrics()['misses'] == 0
        assert CacheService.metrics()['hit_rate'] == 0.0

    def test_health_check(self):
        health = CacheService.health_check()

        assert health['status'] == 'healthy'
        assert health['latency_ms'] >= 0
