"""
Django admin configuration for RBAC app.
"""
from django.contrib import admin

from .models import (
    User,
    TenantUser,
    Permission,
    Role,
    RolePermission,
    UserPermission,
    UserGlobalPermission,
    AuditLog,
)


@admin.register(User)
class UserAdmin(admin.ModelAdmin):
    list_display = ['email', 'first_name', 'last_name', 'platform_role', 'is_active', 'created_at']
    list_filter = ['platform_role', 'is_active', 'is_superuser']
    search_fields = ['email', 'first_name', 'last_name']
    ordering = ['-created_at']
    readonly_fields = ['id', 'password_hash', 'last_login_at', 'created_at', 'updated_at']


@admin.register(TenantUser)
class TenantUserAdmin(admin.ModelAdmin):
    list_display = ['user', 'tenant', 'is_active', 'is_primary', 'invite_status', 'last_seen_at']
    list_filter = ['is_active', 'invite_status']
    search_fields = ['user__email', 'tenant__name', 'tenant__slug']
    raw_id_fields = ['user', 'tenant', 'invited_by']


@admin.register(Permission)
class PermissionAdmin(admin.ModelAdmin):
    list_display = ['code', 'name', 'module', 'action', 'resource']
    list_filter = ['module']
    search_fields = ['code', 'name']


class RolePermissionInline(admin.TabularInline):
    model = RolePermission
    extra = 0
    raw_id_fields = ['permission']


@admin.register(Role)
class RoleAdmin(admin.ModelAdmin):
    list_display = ['name', 'tenant', 'is_system', 'created_at']
    list_filter = ['is_system']
    search_fields = ['name', 'tenant__name']
    inlines = [RolePermissionInline]


@admin.register(UserPermission)
class UserPermissionAdmin(admin.ModelAdmin):
    list_display = ['tenant_user', 'permission', 'granted', 'expires_at', 'granted_by']
    list_filter = ['granted']
    raw_id_fields = ['tenant_user', 'permission', 'granted_by']


@admin.register(UserGlobalPermission)
class UserGlobalPermissionAdmin(admin.ModelAdmin):
    list_display = ['user', 'permission', 'granted', 'expires_at', 'granted_by']
    list_filter = ['granted']
    raw_id_fields = ['user', 'permission', 'granted_by']


@admin.register(AuditLog)
class AuditLogAdmin(admin.ModelAdmin):
    list_display = ['action', 'user', 'tenant', 'target_type', 'target_id', 'created_at']
    list_filter = ['action', 'target_type']
    search_fields = ['action', 'user__email', 'request_id']
    readonly_fields = [f.name for f in AuditLog._meta.fields]
