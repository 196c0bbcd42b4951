"""
Tests for the core endpoints, the error envelope and the scope gate.

Tests:
- Health check
- Cache administration and system stats (super admin only)
- Error envelope shape and X-Request-ID propagation
- HasTenantScopes / @requires_scopes
- JWT secret validation at startup
"""
import uuid

import pytest
from django.core.exceptions import ImproperlyConfigured
from rest_framework import status
from rest_framework.views import APIView

from apps.core.apps import validate_jwt_secret
from apps.core.cache import CacheKeys, CacheService
from apps.core.exceptions import APIErrorHandler, ErrorCode, build_error_payload
from apps.core.permissions import HasTenantScopes, requires_scopes

ENVELOPE_KEYS = {'error', 'status', 'details', 'timestamp', 'request_id'}


@pytest.mark.django_db
class TestHealthCheck:

    def test_healthy(self, api_client):
        response = api_client.get('/v1/health')

        assert response.status_code == status.HTTP_200_OK
        assert response.data['status'] == 'healthy'
        assert response.data['database'] == 'healthy'
        assert response.data['cache'] == 'healthy'
        assert response.data['celery'] == 'eager'

    def test_invalid_token_is_ignored_on_public_path(self, api_client):
        api_client.credentials(HTTP_AUTHORIZATION='Bearer not-a-token')

        assert api_client.get('/v1/health').status_code == status.HTTP_200_OK


@pytest.mark.django_db
class TestPerformanceCache:

    @pytest.fixture
    def admin_client(self, super_admin, client_for):
        return client_for(super_admin)

    def test_metrics(self, admin_client):
        CacheService.get('missing')

        response = admin_client.get('/v1/performance/cache')

        assert response.status_code == status.HTTP_200_OK
        assert response.data['data']['metrics']['misses'] >= 1
        assert response.data['data']['health']['status'] == 'healthy'

    def test_set_get_delete(self, admin_client):
        response = admin_client.post('/v1/performance/cache', {
            'action': 'set', 'key': 'demo:key', 'value': {'a': 1}, 'ttl': 30,
        }, format='json')
        assert response.data['data']['stored'] is True

        response = admin_client.post('/v1/performance/cache', {'action': 'get', 'key': 'demo:key'}, format='json')
        assert response.data['data'] == {'key': 'demo:key', 'value': {'a': 1}, 'found': True}

        response = admin_client.post('/v1/performance/cache', {'action': 'delete', 'key': 'demo:key'},
                                     format='json')
        assert response.data['data']['deleted'] is True

        response = admin_client.post('/v1/performance/cache', {'action': 'exists', 'key': 'demo:key'},
                                     format='json')
        assert response.data['data']['exists'] is False

    def test_key_required(self, admin_client):
        response = admin_client.post('/v1/performance/cache', {'action': 'get'}, format='json')

        assert response.status_code == status.HTTP_400_BAD_REQUEST
        assert 'key' in response.data['details']['fields']

    def test_unknown_action(self, admin_client):
        response = admin_client.post('/v1/performance/cache', {'action': 'explode'}, format='json')
        assert response.status_code == status.HTTP_400_BAD_REQUEST

    def test_delete_by_pattern(self, admin_client):
        CacheService.set('crm:dashboard:1', 1)
        CacheService.set('hr:dashboard:1', 1)

        response = admin_client.delete('/v1/performance/cache?pattern=crm:*')

        assert response.status_code == status.HTTP_200_OK
        assert response.data['data']['removed'] == 1
        assert CacheService.exists('hr:dashboard:1')

    def test_tenant_owner_is_forbidden(self, owner_client):
        response = owner_client.get('/v1/performance/cache')

        assert response.status_code == status.HTTP_403_FORBIDDEN
        assert response.data['details']['code'] == 'FORBIDDEN'

    def test_anonymous_is_unauthorized(self, api_client):
        assert api_client.get('/v1/performance/cache').status_code == status.HTTP_401_UNAUTHORIZED


@pytest.mark.django_db
class TestSystemStats:

    def test_stats_are_cached(self, super_admin, client_for, tenant):
        client = client_for(super_admin)

        response = client.get('/v1/admin/system/stats')

        assert response.status_code == status.HTTP_200_OK
        data = response.data['data']
        assert data['tenants'] == {'total': 1, 'active': 1}
        assert data['users']['total'] == 1
        assert CacheService.exists(CacheKeys.SYSTEM_STATS)

        second = client.get('/v1/admin/system/stats').data['data']
        assert second['generated_at'] == data['generated_at']

    def test_owner_is_forbidden(self, owner_client):
        assert owner_client.get('/v1/admin/system/stats').status_code == status.HTTP_403_FORBIDDEN


@pytest.mark.django_db
class TestErrorEnvelope:

    def test_not_found_envelope(self, owner_client):
        response = owner_client.get(f'/v1/crm/leads/{uuid.uuid4()}', HTTP_X_REQUEST_ID='req-123')

        assert response.status_code == status.HTTP_404_NOT_FOUND
        assert set(response.data) == ENVELOPE_KEYS
        assert response.data['status'] == 404
        assert response.data['details']['code'] == 'NOT_FOUND'
        assert response.data['request_id'] == 'req-123'
        assert response['X-Request-ID'] == 'req-123'

    def test_request_id_is_generated(self, api_client):
        response = api_client.get('/v1/health')

        assert uuid.UUID(response['X-Request-ID'])

    def test_validation_envelope(self, owner_client):
        response = owner_client.post('/v1/crm/leads', {}, format='json')

        assert response.status_code == status.HTTP_400_BAD_REQUEST
        assert set(response.data) == ENVELOPE_KEYS
        assert response.data['details']['code'] == 'VALIDATION_ERROR'
        assert 'name' in response.data['details']['fields']

    def test_build_error_payload_defaults_code_from_status(self):
        payload = build_error_payload('Gone', 409, details={'field': 'slug'})

        assert payload['details'] == {'code': 'RESOURCE_EXISTS', 'field': 'slug'}
        assert payload['request_id'] is None

    def test_conflict_helper(self):
        response = APIErrorHandler.conflict('Duplicate', field='email')

        assert response.status_code == 409
        assert response.data['details'] == {'code': ErrorCode.RESOURCE_EXISTS.value, 'field': 'email'}


@requires_scopes('crm:view')
class ScopedView(APIView):
    permission_classes = [HasTenantScopes]


class MethodScopedView(APIView):
    permission_classes = [HasTenantScopes]

    def get(self, request):
        pass

    @requires_scopes('crm:edit')
    def post(self, request):
        pass


@pytest.mark.django_db
class TestHasTenantScopes:

    def test_member_with_scope_passes(self, tenant_request, viewer):
        request = tenant_request('get', '/v1/crm/leads', viewer)

        assert HasTenantScopes().has_permission(request, ScopedView()) is True

    def test_missing_scope_is_denied(self, tenant_request, viewer):
        request = tenant_request('get', '/v1/crm/leads', viewer, scopes=['hr:view'])

        assert HasTenantScopes().has_permission(request, ScopedView()) is False

    def test_method_scopes(self, tenant_request, viewer):
        permission = HasTenantScopes()

        get_request = tenant_request('get', '/x', viewer)
        assert permission.has_permission(get_request, MethodScopedView()) is True

        post_request = tenant_request('post', '/x', viewer)
        assert permission.has_permission(post_request, MethodScopedView()) is False

    def test_tenant_context_required(self, tenant_request, viewer):
        request = tenant_request('get', '/v1/crm/leads', viewer)
        request.tenant = None
        permission = HasTenantScopes()

        assert permission.has_permission(request, ScopedView()) is False
        assert 'X-TENANT-ID' in permission.message

    def test_super_admin_passes_inside_tenant(self, tenant_request, viewer, super_admin):
        request = tenant_request('get', '/v1/crm/leads', viewer, scopes=[])
        request.user = super_admin

        assert HasTenantScopes().has_permission(request, ScopedView()) is True

    def test_object_permission_checks_tenant(self, tenant_request, viewer, other_tenant):
        from apps.crm.models import Lead

        request = tenant_request('get', '/v1/crm/leads', viewer)
        mine = Lead(tenant=viewer.tenant, name='Mine')
        theirs = Lead(tenant=other_tenant, name='Theirs')

        assert HasTenantScopes().has_object_permission(request, ScopedView(), mine) is True
        assert HasTenantScopes().has_object_permission(request, ScopedView(), theirs) is False


class TestJWTSecretValidation:

    STRONG = 'kQ9v-3Lx_7Tz2mWc8Yp4Rb6Hn1Jd5Fs0Ge'

    def test_strong_secret_passes(self):
        validate_jwt_secret(self.STRONG, 'django-secret')

    @pytest.mark.parametrize('secret,message', [
        ('', 'must be set'),
        ('short_key_123', 'at least 32 characters'),
        ('a' * 40, 'insufficient entropy'),
    ])
    def test_weak_secrets_rejected(self, secret, message):
        with pytest.raises(ImproperlyConfigured, match=message):
            validate_jwt_secret(secret, 'django-secret')

    def test_must_differ_from_secret_key(self):
        with pytest.raises(ImproperlyConfigured, match='different from SECRET_KEY'):
            validate_jwt_secret(self.STRONG, self.STRONG)

    def test_error_explains_how_to_generate(self):
        with pytest.raises(ImproperlyConfigured, match='secrets.token_urlsafe'):
            validate_jwt_secret('x', 'django-secret')
