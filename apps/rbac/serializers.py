"""
RBAC serializers for REST API endpoints.

Provides serialization for:
- Authentication (registration, login)
- Users and memberships
- Roles and permissions
- Permission grants
- Audit logs
"""
from django.contrib.auth.password_validation import validate_password
from rest_framework import serializers

from apps.rbac.models import (
    User, TenantUser, Permission, Role, UserPermission, AuditLog
)


# ===== AUTHENTICATION SERIALIZERS =====

class RegistrationSerializer(serializers.Serializer):
    """Serializer for user registration."""

    email = serializers.EmailField(required=True)
    password = serializers.CharField(required=True, write_only=True, style={'input_type': 'password'})
    first_name = serializers.CharField(required=False, allow_blank=True, max_length=100, default='')
    last_name = serializers.CharField(required=False, allow_blank=True, max_length=100, default='')
    business_name = serializers.CharField(required=True, max_length=255)

    def validate_email(self, value):
        return value.lower()

    def validate_password(self, value):
        validate_password(value)
        return value

    def validate_business_name(self, value):
        if not value.strip():
            raise serializers.ValidationError("Business name cannot be empty.")
        return value.strip()


class LoginSerializer(serializers.Serializer):
    """Serializer for user login."""

    email = serializers.EmailField(required=True)
    password = serializers.CharField(required=True, write_only=True, style={'input_type': 'password'})

    def validate_email(self, value):
        return value.lower()


# ===== USER SERIALIZERS =====

class UserSerializer(serializers.ModelSerializer):
    """Read serializer for users."""

    full_name = serializers.CharField(source='get_full_name', read_only=True)

    class Meta:
        model = User
        fields = [
            'id', 'email', 'first_name', 'last_name', 'full_name',
            'platform_role', 'is_active', 'last_login_at', 'created_at', 'updated_at',
        ]
        read_only_fields = fields


class AdminUserSerializer(UserSerializer):
    """User with their tenant memberships, for admin listings."""

    tenants = serializers.SerializerMethodField()

    class Meta(UserSerializer.Meta):
        fields = UserSerializer.Meta.fields + ['tenants']
        read_only_fields = fields

    def get_tenants(self, obj):
        return [
            {
                'id': str(m.tenant_id),
                'name': m.tenant.name,
                'slug': m.tenant.slug,
                'is_primary': m.is_primary,
            }
            for m in obj.tenant_memberships.all()
            if m.is_active
        ]


class UserCreateSerializer(serializers.Serializer):
    """Input for POST /v1/admin/users."""

    email = serializers.EmailField()
    password = serializers.CharField(write_only=True, required=False, allow_blank=True)
    first_name = serializers.CharField(required=False, allow_blank=True, max_length=100, default='')
    last_name = serializers.CharField(required=False, allow_blank=True, max_length=100, default='')
    platform_role = serializers.ChoiceField(choices=User.PlatformRole.choices, required=False)
    tenant_id = serializers.UUIDField(required=False, allow_null=True)
    role = serializers.CharField(required=False, allow_blank=True)

    def validate_password(self, value):
        if value:
            validate_password(value)
        return value

    def validate(self, attrs):
        request = self.context.get('request')
        # Only platform admins hand out platform roles.
        if attrs.get('platform_role') not in (None, User.PlatformRole.USER):
            from apps.rbac.services import PermissionService
            if request is None or not PermissionService.is_super_admin(request.user):
                raise serializers.ValidationError({'platform_role': 'Only super admins can assign platform roles.'})
        return attrs


class UserUpdateSerializer(UserCreateSerializer):
    """Input for PUT /v1/admin/users/{id}; every field optional."""

    email = serializers.EmailField(required=False)
    first_name = serializers.CharField(required=False, allow_blank=True, max_length=100)
    last_name = serializers.CharField(required=False, allow_blank=True, max_length=100)
    is_active = serializers.BooleanField(required=False)

    def get_fields(self):
        fields = super().get_fields()
        fields.pop('tenant_id')
        fields.pop('role')
        return fields


class TenantUserSerializer(serializers.ModelSerializer):
    """Membership with user, tenant and role names."""

    user = UserSerializer(read_only=True)
    tenant_name = serializers.CharField(source='tenant.name', read_only=True)
    tenant_slug = serializers.CharField(source='tenant.slug', read_only=True)
    roles = serializers.SerializerMethodField()

    class Meta:
        model = TenantUser
        fields = [
            'id', 'tenant', 'tenant_name', 'tenant_slug', 'user', 'roles',
            'is_active', 'is_primary', 'invite_status', 'joined_at', 'last_seen_at',
        ]
        read_only_fields = fields

    def get_roles(self, obj):
        return sorted(ur.role.name for ur in obj.user_roles.select_related('role'))


# ===== PERMISSION / ROLE SERIALIZERS =====

class PermissionSerializer(serializers.ModelSerializer):
    class Meta:
        model = Permission
        fields = ['id', 'code', 'name', 'description', 'module', 'action', 'resource', 'created_at']
        read_only_fields = ['id', 'code', 'created_at']


class PermissionCreateSerializer(serializers.Serializer):
    """Input for POST /v1/admin/permissions."""

    name = serializers.CharField(max_length=255)
    module = serializers.CharField(max_length=50)
    action = serializers.CharField(max_length=50)
    resource = serializers.CharField(max_length=100, required=False, allow_blank=True, default='')
    description = serializers.CharField(required=False, allow_blank=True, default='')


class RoleSerializer(serializers.ModelSerializer):
    permissions = serializers.SerializerMethodField()
    member_count = serializers.SerializerMethodField()

    class Meta:
        model = Role
        fields = ['id', 'name', 'description', 'is_system', 'permissions', 'member_count', 'created_at']
        read_only_fields = ['id', 'is_system', 'permissions', 'member_count', 'created_at']

    def get_permissions(self, obj):
        return sorted(obj.permission_codes())

    def get_member_count(self, obj):
        return obj.user_roles.count()

    def validate_name(self, value):
        tenant = self.context.get('tenant')
        queryset = Role.objects.filter(tenant=tenant, name=value)
        if self.instance is not None:
            queryset = queryset.exclude(id=self.instance.id)
        if queryset.exists():
            raise serializers.ValidationError('A role with this name already exists.')
        return value


class RolePermissionsSerializer(serializers.Serializer):
    permission_codes = serializers.ListField(child=serializers.CharField(), allow_empty=False)


class UserPermissionSerializer(serializers.ModelSerializer):
    code = serializers.CharField(source='permission.code', read_only=True)
    name = serializers.CharField(source='permission.name', read_only=True)
    tenant_id = serializers.UUIDField(source='tenant_user.tenant_id', read_only=True)
    granted_by_email = serializers.EmailField(source='granted_by.email', read_only=True, default=None)

    class Meta:
        model = UserPermission
        fields = ['id', 'code', 'name', 'tenant_id', 'granted', 'reason', 'expires_at', 'granted_by_email', 'created_at']
        read_only_fields = fields


class PermissionGrantSerializer(serializers.Serializer):
    """Input for POST /v1/admin/users/{id}/permissions."""

    permission_code = serializers.CharField(required=False, allow_blank=True)
    reason = serializers.CharField(required=False, allow_blank=True, default='')
    expires_at = serializers.DateTimeField(required=False, allow_null=True)
    tenant_id = serializers.UUIDField(required=False, allow_null=True)


# ===== AUDIT =====

class AuditLogSerializer(serializers.ModelSerializer):
    user_email = serializers.EmailField(source='user.email', read_only=True, default=None)

    class Meta:
        model = AuditLog
        fields = [
            'id', 'action', 'user', 'user_email', 'tenant', 'target_type', 'target_id',
            'diff', 'metadata', 'ip_address', 'user_agent', 'request_id', 'created_at',
        ]
        read_only_fields = fields
