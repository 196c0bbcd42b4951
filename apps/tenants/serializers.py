"""
Serializers for tenant endpoints.
"""
from rest_framework import serializers

from apps.tenants.models import Tenant


class TenantSerializer(serializers.ModelSerializer):
    parent_tenant_id = serializers.UUIDField(source='parent_tenant.id', read_only=True, default=None)

    class Meta:
        model = Tenant
        fields = [
            'id', 'name', 'slug', 'description', 'domain', 'contact_email',
            'is_active', 'parent_tenant_id', 'settings', 'created_at', 'updated_at',
        ]
        read_only_fields = fields


class AdminTenantListSerializer(TenantSerializer):
    """Tenant with the counts annotated by TenantService.with_counts()."""

    user_count = serializers.IntegerField(read_only=True, default=0)
    customer_count = serializers.IntegerField(read_only=True, default=0)
    lead_count = serializers.IntegerField(read_only=True, default=0)

    class Meta(TenantSerializer.Meta):
        fields = TenantSerializer.Meta.fields + ['user_count', 'customer_count', 'lead_count']
        read_only_fields = fields


class TenantCreateSerializer(serializers.Serializer):
    """
    Input for POST /v1/admin/tenants.

    name and slug are checked by TenantService so a missing value yields
    the platform's 400 message rather than per-field errors.
    """

    name = serializers.CharField(max_length=255, required=False, allow_blank=True)
    slug = serializers.CharField(max_length=150, required=False, allow_blank=True)
    description = serializers.CharField(required=False, allow_blank=True, default='')
    domain = serializers.CharField(max_length=255, required=False, allow_blank=True, default='')
    contact_email = serializers.EmailField(required=False, allow_blank=True, default='')
    parent_tenant_id = serializers.UUIDField(required=False, allow_null=True)
    settings = serializers.JSONField(required=False)

    def validate_slug(self, value):
        value = value.strip().lower()
        if value and not all(c.isalnum() or c in '-_' for c in value):
            raise serializers.ValidationError('Slug may only contain letters, numbers, hyphens and underscores.')
        return value


class TenantUpdateSerializer(TenantCreateSerializer):
    """Used with partial=True so only the keys the client sent reach the service."""

    is_active = serializers.BooleanField(required=False)


class SwitchTenantSerializer(serializers.Serializer):
    tenant_id = serializers.UUIDField(required=False, allow_null=True)
