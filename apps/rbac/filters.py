"""
Query filters for the admin user and audit log listings.
"""
import django_filters
from django_filters import rest_framework as filters

from apps.rbac.models import AuditLog, User


class AdminUserFilter(filters.FilterSet):
    """?tenant_id= keeps active members of that tenant; ?is_active= filters accounts."""

    tenant_id = django_filters.UUIDFilter(method='filter_tenant')

    class Meta:
        model = User
        fields = ['is_active']

    def filter_tenant(self, queryset, name, value):
        return queryset.filter(
            tenant_memberships__tenant_id=value, tenant_memberships__is_active=True
        ).distinct()


class AuditLogFilter(filters.FilterSet):
    user_id = django_filters.UUIDFilter(field_name='user')
    from_date = django_filters.IsoDateTimeFilter(field_name='created_at', lookup_expr='gte')
    to_date = django_filters.IsoDateTimeFilter(field_name='created_at', lookup_expr='lte')

    class Meta:
        model = AuditLog
        fields = ['action', 'target_type']
