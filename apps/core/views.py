"""
Core API views: health check and the platform performance endpoints.
"""
from rest_framework.views import APIView
from rest_framework.response import Response
from rest_framework import serializers, status
from django.db import connection
from django.conf import settings
from django.core.cache import cache
from django.utils import timezone
from drf_spectacular.utils import extend_schema, OpenApiParameter
from drf_spectacular.types import OpenApiTypes
import logging

from apps.core.cache import CacheKeys, CacheService, CacheTTL
from apps.core.permissions import IsSuperAdmin

logger = logging.getLogger(__name__)


class HealthCheckView(APIView):
    """
    Health check endpoint to verify system dependencies.

    GET /v1/health

    Returns 200 if all dependencies are healthy, 503 otherwise.
    """
    authentication_classes = []
    permission_classes = []

    @extend_schema(
        summary="Health check",
        description="Check the health of the system and its dependencies",
        responses={
            200: {
                'type': 'object',
                'properties': {
                    'status': {'type': 'string'},
                    'database': {'type': 'string'},
                    'cache': {'type': 'string'},
                    'celery': {'type': 'string'},
                }
            },
            503: {
                'type': 'object',
                'properties': {
                    'status': {'type': 'string'},
                    'database': {'type': 'string'},
                    'cache': {'type': 'string'},
                    'celery': {'type': 'string'},
                    'errors': {'type': 'array', 'items': {'type': 'string'}},
                }
            }
        },
        tags=['Health']
    )
    def get(self, request):
        health_status = {
            'status': 'healthy',
            'database': 'unknown',
            'cache': 'unknown',
            'celery': 'unknown',
        }
        errors = []

        try:
            with connection.cursor() as cursor:
                cursor.execute("SELECT 1")
            health_status['database'] = 'healthy'
        except Exception as e:
            health_status['database'] = 'unhealthy'
            errors.append(f"Database: {str(e)}")
            logger.error("Database health check failed", exc_info=True)

        cache_health = CacheService.health_check()
        health_status['cache'] = cache_health['status']
        if cache_health['status'] != 'healthy':
            errors.append("Cache: Unable to read test key")

        # Eager mode runs tasks inline, there are no workers to ask
        if getattr(settings, 'CELERY_TASK_ALWAYS_EAGER', False):
            health_status['celery'] = 'eager'
        else:
            try:
                from config.celery import app as celery_app
                stats = celery_app.control.inspect(timeout=2.0).stats()
                if stats:
                    health_status['celery'] = 'healthy'
                else:
                    health_status['celery'] = 'unhealthy'
                    errors.append("Celery: No workers available")
            except Exception as e:
                health_status['celery'] = 'unhealthy'
                errors.append(f"Celery: {str(e)}")
                logger.error("Celery health check failed", exc_info=True)

        if errors:
            health_status['status'] = 'unhealthy'
            health_status['errors'] = errors
            return Response(health_status, status=status.HTTP_503_SERVICE_UNAVAILABLE)

        return Response(health_status, status=status.HTTP_200_OK)


class CacheActionSerializer(serializers.Serializer):
    ACTIONS = [
        'get', 'set', 'delete', 'exists', 'clear', 'invalidate_tag', 'reset_metrics', 'health_check',
    ]
    KEY_ACTIONS = {'get', 'set', 'delete', 'exists'}

    action = serializers.ChoiceField(choices=ACTIONS)
    key = serializers.CharField(required=False, max_length=250)
    value = serializers.JSONField(required=False)
    ttl = serializers.IntegerField(required=False, min_value=1)
    tags = serializers.ListField(child=serializers.CharField(), required=False)
    tag = serializers.CharField(required=False)
    pattern = serializers.CharField(required=False)

    def validate(self, attrs):
        action = attrs['action']
        if action in self.KEY_ACTIONS and not attrs.get('key'):
            raise serializers.ValidationError({'key': f"key is required for action '{action}'"})
        if action == 'set' and 'value' not in attrs:
            raise serializers.ValidationError({'value': "value is required for action 'set'"})
        if action == 'invalidate_tag' and not attrs.get('tag'):
            raise serializers.ValidationError({'tag': "tag is required for action 'invalidate_tag'"})
        return attrs


class PerformanceCacheView(APIView):
    """
    Cache administration for platform admins.

    GET    /v1/performance/cache            metrics and health
    POST   /v1/performance/cache            run one cache action
    DELETE /v1/performance/cache?pattern=   clear by pattern
    """
    permission_classes = [IsSuperAdmin]

    @staticmethod
    def _cache_type():
        return f"{cache.__class__.__module__}.{cache.__class__.__name__}"

    @extend_schema(summary="Cache metrics", responses={200: None, 403: None}, tags=['Performance'])
    def get(self, request):
        return Response({
            'success': True,
            'data': {
                'metrics': CacheService.metrics(),
                'health': CacheService.health_check(),
                'timestamp': timezone.now().isoformat(),
                'cache_type': self._cache_type(),
            }
        })

    @extend_schema(
        summary="Run a cache action",
        description="action: get, set, delete, exists, clear, invalidate_tag, reset_metrics or health_check.",
        request=CacheActionSerializer,
        responses={200: None, 400: None, 403: None},
        tags=['Performance']
    )
    def post(self, request):
        serializer = CacheActionSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data
        action = data['action']
        key = data.get('key')

        if action == 'get':
            value = CacheService.get(key)
            result = {'key': key, 'value': value, 'found': value is not None}
        elif action == 'set':
            result = {'key': key, 'stored': CacheService.set(key, data['value'], data.get('ttl'), data.get('tags', ()))}
        elif action == 'delete':
            result = {'key': key, 'deleted': CacheService.delete(key)}
        elif action == 'exists':
            result = {'key': key, 'exists': CacheService.exists(key)}
        elif action == 'clear':
            result = {'pattern': data.get('pattern'), 'removed': CacheService.clear(data.get('pattern'))}
        elif action == 'invalidate_tag':
            result = {'tag': data['tag'], 'removed': CacheService.invalidate_by_tag(data['tag'])}
        elif action == 'reset_metrics':
            CacheService.reset_metrics()
            result = {'metrics': CacheService.metrics()}
        else:
            result = CacheService.health_check()

        logger.info(
            "Cache admin action",
            extra={'action': action, 'key': key, 'user_id': str(request.user.id)}
        )
        return Response({'success': True, 'action': action, 'data': result})

    @extend_schema(
        summary="Clear cache by pattern",
        parameters=[OpenApiParameter('pattern', OpenApiTypes.STR, OpenApiParameter.QUERY,
                                     description='Glob pattern, omit to clear everything')],
        responses={200: None, 403: None},
        tags=['Performance']
    )
    def delete(self, request):
        pattern = request.query_params.get('pattern')
        removed = CacheService.clear(pattern)
        logger.warning(
            "Cache cleared via admin endpoint",
            extra={'pattern': pattern, 'removed': removed, 'user_id': str(request.user.id)}
        )
        return Response({'success': True, 'data': {'pattern': pattern, 'removed': removed}})


class SystemStatsView(APIView):
    """GET /v1/admin/system/stats - platform wide counts, cached for a minute."""
    permission_classes = [IsSuperAdmin]

    @extend_schema(summary="Platform statistics", responses={200: None, 403: None}, tags=['Performance'])
    def get(self, request):
        stats = CacheService.get(CacheKeys.SYSTEM_STATS)
        if stats is None:
            stats = self._collect()
            CacheService.set(CacheKeys.SYSTEM_STATS, stats, CacheTTL.SYSTEM_STATS)
        return Response({'success': True, 'data': stats})

    @staticmethod
    def _collect():
        from apps.events.models import EventBus
        from apps.rbac.models import AuditLog, User
        from apps.tenants.models import Tenant

        return {
            'tenants': {
                'total': Tenant.objects.count(),
                'active': Tenant.objects.filter(is_active=True).count(),
            },
            'users': {
                'total': User.objects.count(),
                'active': User.objects.filter(is_active=True).count(),
            },
            'audit_logs': AuditLog.objects.count(),
            'events': {
                'total': EventBus.objects.count(),
                'pending': EventBus.objects.filter(status=EventBus.Status.PENDING).count(),
                'failed': EventBus.objects.filter(status=EventBus.Status.FAILED).count(),
            },
            'generated_at': timezone.now().isoformat(),
        }
