"""
URL routing for tenant endpoints.
"""
from django.urls import path

from apps.tenants.views import (
    AdminTenantListView, AdminTenantDetailView, SwitchTenantView, MyTenantsView
)

app_name = 'tenants'

urlpatterns = [
    path('admin/tenants', AdminTenantListView.as_view(), name='admin-tenant-list'),
    path('admin/tenants/<uuid:tenant_id>', AdminTenantDetailView.as_view(), name='admin-tenant-detail'),
    path('tenants/switch', SwitchTenantView.as_view(), name='tenant-switch'),
    path('tenants/mine', MyTenantsView.as_view(), name='tenant-mine'),
]
