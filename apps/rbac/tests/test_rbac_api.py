"""
Tests for the authentication, user administration, role and audit log endpoints.
"""
import uuid

import pytest
from rest_framework import status

from apps.rbac.models import AuditLog, Role, TenantUser, User, UserPermission
from apps.rbac.services import AuthService, RBACService
from apps.tenants.models import Tenant

REGISTRATION = {
    'email': 'Ada@Example.com',
    'password': 'SecurePass123!',
    'first_name': 'Ada',
    'last_name': 'Lovelace',
    'business_name': 'Analytical Engines',
}


@pytest.mark.django_db
class TestRegistration:

    def test_register_creates_owner_tenant(self, api_client):
        response = api_client.post('/v1/auth/register', REGISTRATION, format='json')

        assert response.status_code == status.HTTP_201_CREATED
        assert response.data['user']['email'] == 'ada@example.com'
        assert response.data['tenant']['slug'] == 'analytical-engines'
        assert AuthService.validate_jwt(response.data['token'])['email'] == 'ada@example.com'

        membership = TenantUser.objects.get(user__email='ada@example.com')
        assert membership.is_primary
        assert 'users:manage' in RBACService.resolve_scopes(membership)
        assert AuditLog.objects.filter(action='user_registered').exists()

    def test_slug_is_made_unique(self, api_client):
        api_client.post('/v1/auth/register', REGISTRATION, format='json')

        response = api_client.post('/v1/auth/register', dict(REGISTRATION, email='grace@example.com'),
                                   format='json')

        assert response.data['tenant']['slug'] == 'analytical-engines-1'

    def test_duplicate_email(self, api_client):
        api_client.post('/v1/auth/register', REGISTRATION, format='json')

        response = api_client.post('/v1/auth/register', dict(REGISTRATION, business_name='Other'), format='json')

        assert response.status_code == status.HTTP_409_CONFLICT
        assert response.data['details'] == {'code': 'RESOURCE_EXISTS', 'field': 'email'}
        assert Tenant.objects.count() == 1

    def test_missing_business_name(self, api_client):
        data = {k: v for k, v in REGISTRATION.items() if k != 'business_name'}

        response = api_client.post('/v1/auth/register', data, format='json')

        assert response.status_code == status.HTTP_400_BAD_REQUEST
        assert 'business_name' in response.data['details']['fields']


@pytest.mark.django_db
class TestLogin:

    def test_login(self, api_client, owner):
        response = api_client.post('/v1/auth/login', {
            'email': 'OWNER@example.com', 'password': 'testpass123',
        }, format='json')

        assert response.status_code == status.HTTP_200_OK
        assert AuthService.get_user_from_jwt(response.data['token']) == owner.user
        assert [t['tenant_slug'] for t in response.data['tenants']] == ['test-tenant']
        owner.user.refresh_from_db()
        assert owner.user.last_login_at is not None

    @pytest.mark.parametrize('email,password', [
        ('owner@example.com', 'wrong-password'),
        ('nobody@example.com', 'testpass123'),
    ])
    def test_bad_credentials(self, api_client, owner, email, password):
        response = api_client.post('/v1/auth/login', {'email': email, 'password': password}, format='json')

        assert response.status_code == status.HTTP_401_UNAUTHORIZED
        assert response.data['details']['code'] == 'UNAUTHORIZED'

    def test_inactive_user_cannot_login(self, api_client, owner):
        User.objects.filter(id=owner.user.id).update(is_active=False)

        response = api_client.post('/v1/auth/login', {
            'email': 'owner@example.com', 'password': 'testpass123',
        }, format='json')

        assert response.status_code == status.HTTP_401_UNAUTHORIZED


@pytest.mark.django_db
class TestMe:

    def test_me_with_tenant(self, viewer_client, tenant):
        response = viewer_client.get('/v1/auth/me')

        assert response.status_code == status.HTTP_200_OK
        assert response.data['user']['email'] == 'viewer@example.com'
        assert response.data['current_tenant'] == str(tenant.id)
        assert response.data['scopes'] == sorted(response.data['scopes'])
        assert 'crm:view' in response.data['scopes']
        assert 'crm:edit' not in response.data['scopes']

    def test_me_uses_primary_tenant_without_header(self, owner, tenant, client_for):
        response = client_for(owner.user).get('/v1/auth/me')

        assert response.data['current_tenant'] == str(tenant.id)

    def test_anonymous(self, api_client):
        response = api_client.get('/v1/auth/me')

        assert response.status_code == status.HTTP_401_UNAUTHORIZED


@pytest.mark.django_db
class TestAdminUsers:

    def test_owner_lists_own_tenant_members(self, owner_client, viewer, other_tenant, make_member):
        make_member(other_tenant, 'Owner', email='stranger@example.com')

        response = owner_client.get('/v1/admin/users')

        assert response.status_code == status.HTTP_200_OK
        emails = {u['email'] for u in response.data['results']}
        assert emails == {'owner@example.com', 'viewer@example.com'}
        assert response.data['count'] == 2

    def test_super_admin_sees_everyone(self, super_admin, client_for, owner, other_tenant, make_member):
        make_member(other_tenant, 'Owner', email='stranger@example.com')

        response = client_for(super_admin).get('/v1/admin/users?search=stranger')

        assert [u['email'] for u in response.data['results']] == ['stranger@example.com']

    def test_super_admin_filters_by_tenant(self, super_admin, client_for, owner, other_tenant, make_member):
        make_member(other_tenant, 'Owner', email='stranger@example.com')

        response = client_for(super_admin).get(f'/v1/admin/users?tenant_id={other_tenant.id}')

        assert [u['email'] for u in response.data['results']] == ['stranger@example.com']

    @pytest.mark.parametrize('query', ['tenant_id=xyz', 'tenant_id=42'])
    def test_malformed_filters_rejected(self, super_admin, client_for, query):
        response = client_for(super_admin).get(f'/v1/admin/users?{query}')

        assert response.status_code == status.HTTP_400_BAD_REQUEST
        assert response.data['details']['code'] == 'VALIDATION_ERROR'

    def test_viewer_is_forbidden(self, viewer_client):
        response = viewer_client.get('/v1/admin/users')

        assert response.status_code == status.HTTP_403_FORBIDDEN

    def test_create_user_in_current_tenant(self, owner_client, tenant):
        response = owner_client.post('/v1/admin/users', {
            'email': 'new@example.com', 'password': 'AnotherPass123!', 'role': 'Member',
        }, format='json')

        assert response.status_code == status.HTTP_201_CREATED
        assert response.data['tenants'][0]['id'] == str(tenant.id)
        membership = TenantUser.objects.get(user__email='new@example.com')
        assert 'ai:use' in RBACService.resolve_scopes(membership)
        assert AuditLog.objects.filter(action='USER_CREATED').exists()

    def test_create_user_in_foreign_tenant(self, owner_client, other_tenant):
        response = owner_client.post('/v1/admin/users', {
            'email': 'new@example.com', 'tenant_id': str(other_tenant.id),
        }, format='json')

        assert response.status_code == status.HTTP_403_FORBIDDEN
        assert not User.objects.filter(email='new@example.com').exists()

    def test_duplicate_email(self, owner_client, viewer):
        response = owner_client.post('/v1/admin/users', {'email': 'viewer@example.com'}, format='json')

        assert response.status_code == status.HTTP_409_CONFLICT

    def test_platform_role_needs_super_admin(self, owner_client):
        response = owner_client.post('/v1/admin/users', {
            'email': 'boss@example.com', 'platform_role': 'SUPER_ADMIN',
        }, format='json')

        assert response.status_code == status.HTTP_400_BAD_REQUEST
        assert 'platform_role' in response.data['details']['fields']

    def test_update_user(self, owner_client, viewer):
        response = owner_client.put(f'/v1/admin/users/{viewer.user.id}', {'first_name': 'Vera'}, format='json')

        assert response.status_code == status.HTTP_200_OK
        assert response.data['first_name'] == 'Vera'
        log = AuditLog.objects.get(action='USER_UPDATED')
        assert log.diff == {'first_name': {'old': '', 'new': 'Vera'}}

    def test_delete_user(self, owner_client, viewer):
        response = owner_client.delete(f'/v1/admin/users/{viewer.user.id}')

        assert response.status_code == status.HTTP_200_OK
        assert response.data == {'success': True, 'message': 'User deleted'}
        user = User.objects.get(id=viewer.user.id)
        assert not user.is_active
        assert user.email.startswith('deleted_')
        assert user.email.endswith('_viewer@example.com')
        viewer.refresh_from_db()
        assert not viewer.is_active

    def test_cannot_delete_self(self, owner_client, owner):
        response = owner_client.delete(f'/v1/admin/users/{owner.user.id}')

        assert response.status_code == status.HTTP_400_BAD_REQUEST
        assert User.objects.get(id=owner.user.id).is_active

    def test_user_outside_tenant_is_404(self, owner_client, other_tenant, make_member):
        stranger = make_member(other_tenant, 'Owner')

        response = owner_client.get(f'/v1/admin/users/{stranger.user.id}')

        assert response.status_code == status.HTTP_404_NOT_FOUND
        assert response.data['details']['resource'] == 'User'


@pytest.mark.django_db
class TestPlatformAdminProtection:

    @pytest.fixture
    def platform_member(self, super_admin, tenant, make_member):
        """The platform super admin also holds a Viewer seat in the tenant."""
        return make_member(tenant, 'Viewer', user=super_admin, is_primary=False)

    def test_tenant_owner_cannot_reset_platform_admin_password(self, owner_client, super_admin,
                                                               platform_member, api_client):
        response = owner_client.put(
            f'/v1/admin/users/{super_admin.id}', {'password': 'Hijacked-Pass-9876'}, format='json'
        )

        assert response.status_code == status.HTTP_403_FORBIDDEN
        assert response.data['details']['code'] == 'FORBIDDEN'
        response = api_client.post('/v1/auth/login', {
            'email': 'root@example.com', 'password': 'Hijacked-Pass-9876',
        }, format='json')
        assert response.status_code == status.HTTP_401_UNAUTHORIZED

    def test_tenant_owner_cannot_downgrade_platform_admin(self, owner_client, super_admin, platform_member):
        response = owner_client.put(
            f'/v1/admin/users/{super_admin.id}', {'platform_role': 'USER'}, format='json'
        )

        assert response.status_code == status.HTTP_403_FORBIDDEN
        super_admin.refresh_from_db()
        assert super_admin.platform_role == User.PlatformRole.SUPER_ADMIN

    def test_tenant_owner_cannot_delete_platform_admin(self, owner_client, super_admin, platform_member):
        response = owner_client.delete(f'/v1/admin/users/{super_admin.id}')

        assert response.status_code == status.HTTP_403_FORBIDDEN
        super_admin.refresh_from_db()
        assert super_admin.is_active
        assert not AuditLog.objects.filter(action='USER_DELETED').exists()

    def test_tenant_owner_cannot_set_member_password(self, owner_client, viewer):
        response = owner_client.put(
            f'/v1/admin/users/{viewer.user.id}', {'password': 'Another-Pass-1234'}, format='json'
        )

        assert response.status_code == status.HTTP_403_FORBIDDEN
        assert response.data['details']['fields'] == ['password']
        viewer.user.refresh_from_db()
        assert viewer.user.check_password('testpass123')

    def test_super_admin_can_reset_password(self, super_admin, client_for, viewer):
        response = client_for(super_admin).put(
            f'/v1/admin/users/{viewer.user.id}', {'password': 'Another-Pass-1234'}, format='json'
        )

        assert response.status_code == status.HTTP_200_OK
        viewer.user.refresh_from_db()
        assert viewer.user.check_password('Another-Pass-1234')
        assert AuditLog.objects.get(action='USER_UPDATED').diff == {'password': {'changed': True}}


@pytest.mark.django_db
class TestUserPermissionEndpoints:

    def test_grant_and_revoke(self, owner_client, viewer):
        url = f'/v1/admin/users/{viewer.user.id}/permissions'

        response = owner_client.post(url, {'permission_code': 'ai:use', 'reason': 'pilot'}, format='json')

        assert response.status_code == status.HTTP_201_CREATED
        assert response.data['code'] == 'ai:use'
        assert response.data['granted_by_email'] == 'owner@example.com'
        assert 'ai:use' in RBACService.resolve_scopes(viewer)

        response = owner_client.get(url)
        assert [p['code'] for p in response.data['permissions']] == ['ai:use']

        response = owner_client.delete(f'{url}/ai:use')
        assert response.status_code == status.HTTP_204_NO_CONTENT
        assert not UserPermission.objects.get(tenant_user=viewer).granted

        response = owner_client.delete(f'{url}/ai:use')
        assert response.status_code == status.HTTP_404_NOT_FOUND
        assert response.data['details']['resource'] == 'Permission grant'

    def test_code_required(self, owner_client, viewer):
        response = owner_client.post(f'/v1/admin/users/{viewer.user.id}/permissions', {}, format='json')

        assert response.status_code == status.HTTP_400_BAD_REQUEST
        assert response.data['details']['field'] == 'permission_code'

    def test_unknown_code(self, owner_client, viewer):
        response = owner_client.post(f'/v1/admin/users/{viewer.user.id}/permissions',
                                     {'permission_code': 'crm:destroy'}, format='json')

        assert response.status_code == status.HTTP_400_BAD_REQUEST
        assert response.data['details']['field'] == 'permission_code'

    def test_malformed_tenant_id(self, super_admin, client_for, viewer):
        url = f'/v1/admin/users/{viewer.user.id}/permissions'

        response = client_for(super_admin).post(
            url, {'permission_code': 'ai:use', 'tenant_id': 'acme'}, format='json'
        )
        assert response.status_code == status.HTTP_400_BAD_REQUEST

        response = client_for(super_admin).delete(f'{url}/ai:use?tenant_id=acme')
        assert response.status_code == status.HTTP_400_BAD_REQUEST
        assert response.data['details']['field'] == 'tenant_id'

    def test_viewer_cannot_grant_or_revoke(self, viewer_client, owner):
        url = f'/v1/admin/users/{owner.user.id}/permissions'

        assert viewer_client.post(url, {'permission_code': 'ai:use'}, format='json').status_code == 403
        assert viewer_client.delete(f'{url}/ai:use').status_code == 403


@pytest.mark.django_db
class TestPermissionCatalog:

    def test_list_with_filter(self, super_admin, client_for, tenant):
        response = client_for(super_admin).get('/v1/admin/permissions?module=crm')

        assert response.status_code == status.HTTP_200_OK
        assert response.data['count'] == 2
        assert {p['code'] for p in response.data['permissions']} == {'crm:view', 'crm:edit'}

    def test_create_and_conflict(self, super_admin, client_for):
        client = client_for(super_admin)
        payload = {'name': 'Export Reports', 'module': 'reports', 'action': 'export'}

        response = client.post('/v1/admin/permissions', payload, format='json')
        assert response.status_code == status.HTTP_201_CREATED
        assert response.data['code'] == 'reports:export'
        assert response.data['module'] == 'REPORTS'
        assert AuditLog.objects.filter(action='PERMISSION_CREATED').exists()

        response = client.post('/v1/admin/permissions', payload, format='json')
        assert response.status_code == status.HTTP_409_CONFLICT

    def test_owner_is_forbidden(self, owner_client):
        assert owner_client.get('/v1/admin/permissions').status_code == status.HTTP_403_FORBIDDEN


@pytest.mark.django_db
class TestRoleEndpoints:

    def test_list_roles(self, owner_client):
        response = owner_client.get('/v1/roles')

        assert response.status_code == status.HTTP_200_OK
        assert {r['name'] for r in response.data['roles']} == {'Owner', 'Admin', 'Manager', 'Member', 'Viewer'}

    def test_custom_role_flow(self, owner_client, viewer, tenant):
        response = owner_client.post('/v1/roles', {'name': 'Recruiter', 'description': 'Hiring'}, format='json')
        assert response.status_code == status.HTTP_201_CREATED
        assert response.data['is_system'] is False
        role_id = response.data['id']
        assert AuditLog.objects.filter(action='role_created', target_id=role_id).exists()

        response = owner_client.post(f'/v1/roles/{role_id}/permissions',
                                     {'permission_codes': ['hr:view', 'hr:edit']}, format='json')
        assert response.status_code == status.HTTP_200_OK
        assert response.data['permissions'] == ['hr:edit', 'hr:view']

        response = owner_client.post(f'/v1/roles/{role_id}/members', {'user_id': str(viewer.user.id)},
                                     format='json')
        assert response.data == {'success': True, 'roles': ['Recruiter', 'Viewer']}
        assert 'hr:edit' in RBACService.resolve_scopes(viewer)

        response = owner_client.delete(f'/v1/roles/{role_id}/members', {'user_id': str(viewer.user.id)},
                                       format='json')
        assert response.data == {'success': True, 'roles': ['Viewer']}
        assert 'hr:edit' not in RBACService.resolve_scopes(viewer)

    def test_duplicate_role_name(self, owner_client):
        response = owner_client.post('/v1/roles', {'name': 'Viewer'}, format='json')

        assert response.status_code == status.HTTP_400_BAD_REQUEST
        assert 'name' in response.data['details']['fields']

    def test_unknown_permission_codes(self, owner_client, tenant):
        role = Role.objects.by_name(tenant, 'Viewer')

        response = owner_client.post(f'/v1/roles/{role.id}/permissions',
                                     {'permission_codes': ['hr:fire']}, format='json')

        assert response.status_code == status.HTTP_400_BAD_REQUEST
        assert response.data['details']['field'] == 'permission_codes'

    def test_role_of_other_tenant_is_404(self, owner_client, other_tenant):
        role = Role.objects.by_name(other_tenant, 'Viewer')

        response = owner_client.post(f'/v1/roles/{role.id}/permissions',
                                     {'permission_codes': ['hr:view']}, format='json')

        assert response.status_code == status.HTTP_404_NOT_FOUND

    def test_member_required(self, owner_client, tenant):
        role = Role.objects.by_name(tenant, 'Viewer')

        response = owner_client.post(f'/v1/roles/{role.id}/members', {'user_id': str(uuid.uuid4())},
                                     format='json')
        assert response.status_code == status.HTTP_404_NOT_FOUND

        response = owner_client.post(f'/v1/roles/{role.id}/members', {}, format='json')
        assert response.status_code == status.HTTP_400_BAD_REQUEST
        assert response.data['details']['field'] == 'user_id'

    def test_viewer_cannot_manage_roles(self, viewer_client):
        assert viewer_client.get('/v1/roles').status_code == status.HTTP_403_FORBIDDEN


@pytest.mark.django_db
class TestAuditLogs:

    def test_viewer_reads_own_tenant_logs(self, viewer_client, tenant, other_tenant):
        AuditLog.log_action(action='lead_created', tenant=tenant, target_type='Lead')
        AuditLog.log_action(action='lead_created', tenant=other_tenant, target_type='Lead')

        response = viewer_client.get('/v1/audit-logs?action=lead_created')

        assert response.status_code == status.HTTP_200_OK
        assert response.data['count'] == 1
        assert str(response.data['results'][0]['tenant']) == str(tenant.id)

    def test_filter_by_user(self, owner_client, owner, viewer, tenant):
        AuditLog.log_action(action='deal_created', user=owner.user, tenant=tenant)
        AuditLog.log_action(action='deal_created', user=viewer.user, tenant=tenant)

        response = owner_client.get(f'/v1/audit-logs?action=deal_created&user_id={viewer.user.id}')

        assert [log['user_email'] for log in response.data['results']] == ['viewer@example.com']

    @pytest.mark.parametrize('query', ['from_date=bad', 'to_date=2024-02-31T00:00:00', 'user_id=42'])
    def test_malformed_filters_rejected(self, owner_client, query):
        response = owner_client.get(f'/v1/audit-logs?{query}')

        assert response.status_code == status.HTTP_400_BAD_REQUEST
        assert response.data['details']['code'] == 'VALIDATION_ERROR'

    def test_member_without_analytics_scope(self, tenant, make_member, client_for):
        member = make_member(tenant, 'Member')

        response = client_for(member.user, tenant).get('/v1/audit-logs')

        assert response.status_code == status.HTTP_403_FORBIDDEN

    def test_super_admin_reads_across_tenants(self, super_admin, client_for, tenant, other_tenant):
        response = client_for(super_admin).get('/v1/audit-logs?action=tenant_roles_seeded')

        assert response.status_code == status.HTTP_200_OK
        assert response.data['count'] == 2

    def test_anonymous(self, api_client):
        assert api_client.get('/v1/audit-logs').status_code == status.HTTP_401_UNAUTHORIZED
