"""
Tests for TenantContextMiddleware: token checks, tenant resolution and membership.
"""
import uuid
from datetime import datetime, timedelta, timezone as dt_timezone

import jwt
import pytest
from django.conf import settings
from rest_framework import status

from apps.rbac.models import TenantUser
from apps.tenants.models import Tenant


def _error_code(response):
    return response.json()['details']['code']


@pytest.mark.django_db
class TestTokenValidation:

    def test_invalid_token(self, api_client):
        api_client.credentials(HTTP_AUTHORIZATION='Bearer garbage')

        response = api_client.get('/v1/auth/me')

        assert response.status_code == status.HTTP_401_UNAUTHORIZED
        assert _error_code(response) == 'UNAUTHORIZED'

    def test_expired_token(self, api_client, owner):
        past = datetime.now(dt_timezone.utc) - timedelta(hours=2)
        token = jwt.encode(
            {'user_id': str(owner.user.id), 'email': owner.user.email, 'iat': past, 'exp': past + timedelta(hours=1)},
            settings.JWT_SECRET_KEY,
            algorithm=settings.JWT_ALGORITHM,
        )
        api_client.credentials(HTTP_AUTHORIZATION=f'Bearer {token}')

        assert api_client.get('/v1/auth/me').status_code == status.HTTP_401_UNAUTHORIZED

    def test_token_of_inactive_user(self, owner, client_for):
        client = client_for(owner.user)
        owner.user.is_active = False
        owner.user.save()

        assert client.get('/v1/auth/me').status_code == status.HTTP_401_UNAUTHORIZED

    def test_public_path_skips_token_check(self, api_client, owner):
        api_client.credentials(HTTP_AUTHORIZATION='Bearer garbage')

        response = api_client.post('/v1/auth/login', {
            'email': 'owner@example.com', 'password': 'testpass123',
        }, format='json')

        assert response.status_code == status.HTTP_200_OK

    def test_error_carries_request_id(self, api_client):
        api_client.credentials(HTTP_AUTHORIZATION='Bearer garbage')

        response = api_client.get('/v1/auth/me', HTTP_X_REQUEST_ID='trace-42')

        assert response.json()['request_id'] == 'trace-42'


@pytest.mark.django_db
class TestTenantResolution:

    @pytest.mark.parametrize('tenant_id', [lambda: str(uuid.uuid4()), lambda: 'not-a-uuid'])
    def test_unknown_tenant(self, owner, token_for, api_client, tenant_id):
        api_client.credentials(
            HTTP_AUTHORIZATION=f'Bearer {token_for(owner.user)}', HTTP_X_TENANT_ID=tenant_id()
        )

        response = api_client.get('/v1/auth/me')

        assert response.status_code == status.HTTP_404_NOT_FOUND
        assert _error_code(response) == 'NOT_FOUND'

    def test_suspended_tenant(self, owner_client, tenant):
        Tenant.objects.filter(id=tenant.id).update(is_active=False)

        response = owner_client.get('/v1/auth/me')

        assert response.status_code == status.HTTP_403_FORBIDDEN
        assert _error_code(response) == 'TENANT_SUSPENDED'

    def test_non_member(self, owner, other_tenant, client_for):
        response = client_for(owner.user, other_tenant).get('/v1/crm/leads')

        assert response.status_code == status.HTTP_403_FORBIDDEN
        assert _error_code(response) == 'FORBIDDEN'

    def test_pending_invitation(self, tenant, make_member, client_for):
        membership = make_member(tenant, 'Owner')
        TenantUser.objects.filter(id=membership.id).update(invite_status=TenantUser.InviteStatus.PENDING)

        response = client_for(membership.user, tenant).get('/v1/crm/leads')

        assert response.status_code == status.HTTP_403_FORBIDDEN

    def test_ended_membership(self, viewer, tenant, client_for):
        viewer.deactivate()

        response = client_for(viewer.user, tenant).get('/v1/crm/leads')

        assert response.status_code == status.HTTP_403_FORBIDDEN

    def test_super_admin_without_membership(self, super_admin, tenant, client_for):
        client = client_for(super_admin, tenant)

        response = client.get('/v1/auth/me')
        assert response.data['current_tenant'] == str(tenant.id)
        assert response.data['scopes'] == []

        assert client.get('/v1/crm/leads').status_code == status.HTTP_200_OK

    def test_no_membership_means_no_tenant(self, make_user, client_for):
        response = client_for(make_user('loner@example.com')).get('/v1/auth/me')

        assert response.status_code == status.HTTP_200_OK
        assert response.data['current_tenant'] is None
        assert response.data['scopes'] == []

    def test_scoped_endpoint_without_tenant(self, make_user, client_for):
        response = client_for(make_user('loner@example.com')).get('/v1/crm/leads')

        assert response.status_code == status.HTTP_403_FORBIDDEN
        assert 'X-TENANT-ID' in response.data['error']

    def test_fallback_skips_suspended_primary(self, owner, tenant, other_tenant, make_member, client_for):
        make_member(other_tenant, 'Viewer', user=owner.user, is_primary=False)
        Tenant.objects.filter(id=tenant.id).update(is_active=False)

        response = client_for(owner.user).get('/v1/auth/me')

        assert response.data['current_tenant'] == str(other_tenant.id)

    def test_last_seen_is_updated(self, owner_client, owner):
        assert owner.last_seen_at is None

        owner_client.get('/v1/auth/me')

        owner.refresh_from_db()
        assert owner.last_seen_at is not None

    def test_anonymous_request_reaches_view(self, api_client):
        response = api_client.get('/v1/crm/leads')

        assert response.status_code == status.HTTP_401_UNAUTHORIZED
        assert response.data['details']['code'] == 'UNAUTHORIZED'
