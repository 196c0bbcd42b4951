"""
Tests for scope resolution, permission grants, roles and the permission gate.
"""
from datetime import timedelta

import pytest
from django.utils import timezone

from apps.core.exceptions import ValidationError
from apps.rbac.defaults import CANONICAL_PERMISSIONS, DEFAULT_ROLES, seed_tenant_roles
from apps.rbac.models import (
    AuditLog, Permission, Role, TenantUser, TenantUserRole, UserGlobalPermission, UserPermission
)
from apps.rbac.services import PermissionService, RBACService


@pytest.mark.django_db
class TestRoleSeeding:

    def test_new_tenant_gets_default_roles(self, tenant):
        names = set(Role.objects.filter(tenant=tenant).values_list('name', flat=True))

        assert names == set(DEFAULT_ROLES)
        assert Permission.objects.count() == len(CANONICAL_PERMISSIONS)
        log = AuditLog.objects.get(action='tenant_roles_seeded', tenant=tenant)
        assert log.metadata['total_roles'] == len(DEFAULT_ROLES)

    def test_seeding_is_idempotent(self, tenant):
        assert seed_tenant_roles(tenant) == []
        assert Role.objects.filter(tenant=tenant).count() == len(DEFAULT_ROLES)

    def test_owner_role_holds_everything(self, tenant):
        owner_role = Role.objects.by_name(tenant, 'Owner')

        assert owner_role.permission_codes() == set(Permission.objects.values_list('code', flat=True))


@pytest.mark.django_db
class TestScopeResolution:

    def test_owner_scopes(self, owner):
        scopes = RBACService.resolve_scopes(owner)

        assert {'crm:edit', 'users:manage', 'ai:use', 'admin:manage_users'} <= scopes

    def test_viewer_scopes_are_read_only(self, viewer):
        scopes = RBACService.resolve_scopes(viewer)

        assert scopes == {
            'analytics:view', 'crm:view', 'hr:view', 'projects:view',
            'content:view', 'events:view', 'notifications:view', 'sales:view',
        }

    def test_member_without_roles_has_no_scopes(self, tenant, make_member):
        membership = make_member(tenant, role=None)

        assert RBACService.resolve_scopes(membership) == set()

    def test_union_of_roles(self, tenant, make_member):
        membership = make_member(tenant, 'Viewer')
        RBACService.assign_role(membership, Role.objects.by_name(tenant, 'Member'))

        scopes = RBACService.resolve_scopes(membership)

        assert 'analytics:view' in scopes
        assert 'ai:use' in scopes


@pytest.mark.django_db
class TestPermissionGrants:

    def test_grant_adds_scope_and_audits(self, viewer, owner):
        assert not RBACService.has_scope(viewer, 'ai:use')

        grant = RBACService.grant_permission(viewer, 'ai:use', reason='pilot', granted_by=owner.user)

        assert grant.granted is True
        assert RBACService.has_scope(viewer, 'ai:use')
        log = AuditLog.objects.get(action='PERMISSION_GRANTED')
        assert log.user == owner.user
        assert log.metadata['permission_code'] == 'ai:use'

    def test_expired_grant_is_ignored(self, viewer):
        RBACService.grant_permission(viewer, 'ai:use', expires_at=timezone.now() - timedelta(minutes=1))

        assert 'ai:use' not in RBACService.resolve_scopes(viewer)

    def test_future_expiry_counts(self, viewer):
        RBACService.grant_permission(viewer, 'ai:use', expires_at=timezone.now() + timedelta(days=1))

        assert 'ai:use' in RBACService.resolve_scopes(viewer)

    def test_revoke_keeps_row(self, viewer):
        RBACService.grant_permission(viewer, 'ai:use')

        assert RBACService.revoke_permission(viewer, 'ai:use') is True
        assert RBACService.revoke_permission(viewer, 'ai:use') is False

        row = UserPermission.objects.get(tenant_user=viewer, permission__code='ai:use')
        assert row.granted is False
        assert 'ai:use' not in RBACService.resolve_scopes(viewer)
        assert AuditLog.objects.filter(action='PERMISSION_REVOKED').count() == 1

    def test_regrant_reactivates_row(self, viewer):
        RBACService.grant_permission(viewer, 'ai:use')
        RBACService.revoke_permission(viewer, 'ai:use')
        RBACService.grant_permission(viewer, 'ai:use', reason='again')

        assert UserPermission.objects.filter(tenant_user=viewer).count() == 1
        assert RBACService.has_scope(viewer, 'ai:use')

    def test_unknown_code(self, viewer):
        with pytest.raises(ValidationError) as exc_info:
            RBACService.grant_permission(viewer, 'crm:destroy')

        assert exc_info.value.details == {'field': 'permission_code'}


@pytest.mark.django_db
class TestRoles:

    def test_assign_role_from_other_tenant(self, owner, other_tenant):
        with pytest.raises(ValidationError):
            RBACService.assign_role(owner, Role.objects.by_name(other_tenant, 'Viewer'))

    def test_assign_is_idempotent(self, viewer, tenant):
        role = Role.objects.by_name(tenant, 'Member')

        RBACService.assign_role(viewer, role)
        RBACService.assign_role(viewer, role)

        assert TenantUserRole.objects.filter(tenant_user=viewer, role=role).count() == 1

    def test_remove_role(self, viewer, tenant):
        role = Role.objects.by_name(tenant, 'Viewer')

        assert RBACService.remove_role(viewer, role) is True
        assert RBACService.remove_role(viewer, role) is False
        assert RBACService.resolve_scopes(viewer) == set()

    def test_set_role_permissions_refreshes_member_scopes(self, viewer, tenant):
        role = Role.objects.by_name(tenant, 'Viewer')
        RBACService.resolve_scopes(viewer)

        codes = RBACService.set_role_permissions(role, ['hr:edit'])

        assert 'hr:edit' in codes
        assert 'hr:edit' in RBACService.resolve_scopes(viewer)

    def test_set_role_permissions_unknown_code(self, tenant):
        role = Role.objects.by_name(tenant, 'Viewer')

        with pytest.raises(ValidationError) as exc_info:
            RBACService.set_role_permissions(role, ['hr:view', 'hr:fire'])

        assert exc_info.value.details == {'field': 'permission_codes'}
        assert 'hr:fire' in exc_info.value.message


@pytest.mark.django_db
class TestPermissionGate:

    def test_super_admin(self, super_admin, make_user):
        assert PermissionService.is_super_admin(super_admin)
        assert PermissionService.can_manage_tenants(super_admin)
        assert PermissionService.can_manage_users(super_admin)
        assert not PermissionService.is_super_admin(make_user('plain@example.com'))

    def test_inactive_super_admin(self, super_admin):
        super_admin.is_active = False
        super_admin.save()

        assert not PermissionService.is_super_admin(super_admin)

    def test_anonymous(self):
        from django.contrib.auth.models import AnonymousUser

        assert not PermissionService.is_super_admin(AnonymousUser())
        assert not PermissionService.can_manage_users(AnonymousUser())
        assert not PermissionService.can_manage_users(None)

    def test_manage_users_through_role(self, tenant, make_member, viewer):
        admin = make_member(tenant, 'Admin')

        assert PermissionService.can_manage_users(admin.user, tenant)
        assert not PermissionService.can_manage_users(viewer.user, tenant)
        assert not PermissionService.can_manage_users(admin.user)

    def test_manage_users_through_grant(self, tenant, viewer):
        RBACService.grant_permission(viewer, 'admin:manage_users')

        assert PermissionService.can_manage_users(viewer.user, tenant)

    def test_non_member_denied(self, owner, other_tenant):
        assert not PermissionService.has_tenant_permission(owner.user, other_tenant, 'ADMIN')

    def test_pending_membership_denied(self, tenant, make_member):
        membership = make_member(tenant, 'Owner')
        TenantUser.objects.filter(id=membership.id).update(invite_status=TenantUser.InviteStatus.PENDING)

        assert not PermissionService.has_tenant_permission(membership.user, tenant, 'ADMIN')

    def test_global_grant(self, make_user):
        user = make_user('ops@example.com')
        UserGlobalPermission.objects.create(
            user=user, permission=PermissionService.get_or_create_permission('ADMIN', 'MANAGE_TENANTS')
        )

        assert PermissionService.can_manage_tenants(user)
        assert not PermissionService.can_manage_users(user)

    def test_expired_global_grant(self, make_user):
        user = make_user('ops@example.com')
        UserGlobalPermission.objects.create(
            user=user,
            permission=PermissionService.get_or_create_permission('ADMIN', 'ADMIN'),
            expires_at=timezone.now() - timedelta(hours=1),
        )

        assert not PermissionService.can_manage_tenants(user)

    def test_admin_in_any_tenant(self, owner, viewer):
        assert PermissionService.is_admin_in_any_tenant(owner.user)
        assert not PermissionService.is_admin_in_any_tenant(viewer.user)

    def test_get_or_create_permission(self):
        permission = PermissionService.get_or_create_permission('reports', 'export')

        assert permission.code == 'reports:export'
        assert permission.module == 'REPORTS'
        assert PermissionService.get_or_create_permission('REPORTS', 'EXPORT') == permission
