"""
Pytest configuration and fixtures.
"""
import pytest
from django.conf import settings
import django


def pytest_configure(config):
    """Configure Django settings for tests."""
    settings.DATABASES['default'] = {
        'ENGINE': 'django.db.backends.sqlite3',
        'NAME': ':memory:',
        'ATOMIC_REQUESTS': False,
    }
    settings.RATE_LIMIT_ENABLED = False
    settings.RATELIMIT_ENABLE = False
    settings.CELERY_TASK_ALWAYS_EAGER = True
    django.setup()


@pytest.fixture(autouse=True)
def clear_cache():
    """Scope caches, dashboards and cache metrics must not leak between tests."""
    from django.core.cache import cache
    from apps.core.cache import CacheService

    cache.clear()
    CacheService.reset_metrics()
    yield
    cache.clear()


@pytest.fixture
def api_client():
    """Return DRF API client."""
    from rest_framework.test import APIClient
    return APIClient()


@pytest.fixture
def request_factory():
    from rest_framework.test import APIRequestFactory
    return APIRequestFactory()


@pytest.fixture
def tenant(db):
    """Create a test tenant (default roles are seeded by signal)."""
    from apps.tenants.models import Tenant
    return Tenant.objects.create(name='Test Tenant', slug='test-tenant')


@pytest.fixture
def other_tenant(db):
    """Create another test tenant for isolation tests."""
    from apps.tenants.models import Tenant
    return Tenant.objects.create(name='Other Tenant', slug='other-tenant')


@pytest.fixture
def make_user(db):
    """Factory: make_user('a@example.com', first_name='A')."""
    from apps.rbac.models import User

    def _make_user(email, password='testpass123', **extra):
        return User.objects.create_user(email=email, password=password, **extra)
    return _make_user


@pytest.fixture
def make_member(db, make_user):
    """
    Factory for memberships.

    make_member(tenant, 'Owner') creates a user, an accepted membership and
    assigns the tenant's seeded role of that name. role=None gives a member
    without roles.
    """
    from apps.rbac.models import Role, TenantUser
    from apps.rbac.services import RBACService

    counter = {'n': 0}

    def _make_member(tenant, role='Owner', email=None, user=None, is_primary=True):
        if user is None:
            counter['n'] += 1
            email = email or f"member{counter['n']}-{tenant.slug}@example.com"
            user = make_user(email)
        membership = TenantUser.objects.create(tenant=tenant, user=user, is_primary=is_primary)
        if role:
            RBACService.assign_role(membership, Role.objects.by_name(tenant, role))
        return membership
    return _make_member


@pytest.fixture
def owner(tenant, make_member):
    """Owner membership of `tenant`."""
    return make_member(tenant, 'Owner', email='owner@example.com')


@pytest.fixture
def viewer(tenant, make_member):
    """Viewer membership of `tenant` (read-only scopes)."""
    return make_member(tenant, 'Viewer', email='viewer@example.com')


@pytest.fixture
def super_admin(make_user):
    """Platform super admin without any membership."""
    from apps.rbac.models import User
    return make_user('root@example.com', platform_role=User.PlatformRole.SUPER_ADMIN)


@pytest.fixture
def token_for():
    """token_for(user) -> signed JWT."""
    from apps.rbac.services import AuthService

    def _token_for(user):
        return AuthService.generate_jwt(user)
    return _token_for


@pytest.fixture
def client_for(token_for):
    """
    client_for(user, tenant=None) -> APIClient sending a bearer token and,
    when tenant is given, X-TENANT-ID.
    """
    from rest_framework.test import APIClient

    def _client_for(user, tenant=None):
        client = APIClient()
        headers = {'HTTP_AUTHORIZATION': f'Bearer {token_for(user)}'}
        if tenant is not None:
            headers['HTTP_X_TENANT_ID'] = str(tenant.id)
        client.credentials(**headers)
        return client
    return _client_for


@pytest.fixture
def owner_client(owner, tenant, client_for):
    return client_for(owner.user, tenant)


@pytest.fixture
def viewer_client(viewer, tenant, client_for):
    return client_for(viewer.user, tenant)


@pytest.fixture
def tenant_request(request_factory):
    """
    Build a DRF request the way TenantContextMiddleware would leave it.

    tenant_request('post', '/v1/crm/leads', membership, data={...})
    """
    from rest_framework.test import force_authenticate
    from apps.rbac.services import RBACService

    def _tenant_request(method, path, membership, data=None, scopes=None):
        request = getattr(request_factory, method)(path, data=data, format='json')
        force_authenticate(request, user=membership.user)
        request.tenant = membership.tenant
        request.membership = membership
        request.scopes = set(scopes) if scopes is not None else RBACService.resolve_scopes(membership)
        request.request_id = 'test-request'
        return request
    return _tenant_request
