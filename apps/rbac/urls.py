"""
RBAC API URLs.

Provides endpoints for:
- Platform user administration and permission grants
- Canonical permission management
- Tenant roles
- Audit log viewing
"""
from django.urls import path

from apps.rbac.views import (
    AdminUserListView,
    AdminUserDetailView,
    AdminUserPermissionsView,
    AdminUserPermissionRevokeView,
    AdminPermissionListView,
    RoleListView,
    RolePermissionsView,
    RoleMembersView,
    AuditLogListView,
)

app_name = 'rbac'

urlpatterns = [
    # Admin users
    path('admin/users', AdminUserListView.as_view(), name='admin-user-list'),
    path('admin/users/<uuid:user_id>', AdminUserDetailView.as_view(), name='admin-user-detail'),
    path('admin/users/<uuid:user_id>/permissions', AdminUserPermissionsView.as_view(),
         name='admin-user-permissions'),
    path('admin/users/<uuid:user_id>/permissions/<str:code>', AdminUserPermissionRevokeView.as_view(),
         name='admin-user-permission-revoke'),

    # Canonical permissions
    path('admin/permissions', AdminPermissionListView.as_view(), name='admin-permission-list'),

    # Roles
    path('roles', RoleListView.as_view(), name='role-list'),
    path('roles/<uuid:role_id>/permissions', RolePermissionsView.as_view(), name='role-permissions'),
    path('roles/<uuid:role_id>/members', RoleMembersView.as_view(), name='role-members'),

    # Audit logs
    path('audit-logs', AuditLogListView.as_view(), name='audit-log-list'),
]
