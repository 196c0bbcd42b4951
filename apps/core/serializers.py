"""
Serializer fields shared by tenant resource serializers.
"""
from django.contrib.auth import get_user_model
from rest_framework import serializers


class TenantRelatedField(serializers.PrimaryKeyRelatedField):
    """
    Primary key field restricted to rows of the tenant in serializer context.

    A pk that belongs to another tenant is reported as "does not exist",
    so tenants cannot discover each other's ids.
    """

    def get_queryset(self):
        queryset = super().get_queryset()
        tenant = self.context.get('tenant')
        if tenant is None:
            return queryset.none()
        return queryset.filter(tenant=tenant)


class TenantMemberField(serializers.PrimaryKeyRelatedField):
    """User pk restricted to active members of the tenant in context."""

    def __init__(self, **kwargs):
        kwargs.setdefault('queryset', get_user_model().objects.all())
        super().__init__(**kwargs)

    def get_queryset(self):
        tenant = self.context.get('tenant')
        if tenant is None:
            return get_user_model().objects.none()
        return get_user_model().objects.filter(
            tenant_memberships__tenant=tenant,
            tenant_memberships__is_active=True,
        ).distinct()


class UserSummaryField(serializers.Field):
    """Read-only {id, email, name} rendering of a user."""

    def __init__(self, **kwargs):
        kwargs['read_only'] = True
        super().__init__(**kwargs)

    def to_representation(self, user):
        if user is None:
            return None
        return {'id': str(user.id), 'email': user.email, 'name': user.get_full_name()}
