"""
Django admin configuration for tenants app.
"""
from django.contrib import admin

from .models import Tenant


@admin.register(Tenant)
class TenantAdmin(admin.ModelAdmin):
    list_display = ['name', 'slug', 'is_active', 'parent_tenant', 'created_at']
    list_filter = ['is_active']
    search_fields = ['name', 'slug', 'domain']
    raw_id_fields = ['parent_tenant']
