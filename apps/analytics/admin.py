from django.contrib import admin

from apps.analytics.models import Dashboard, Report, Widget


@admin.register(Dashboard)
class DashboardAdmin(admin.ModelAdmin):
    list_display = ['name', 'tenant', 'is_default', 'owner', 'created_at']
    list_filter = ['is_default']
    search_fields = ['name']


@admin.register(Widget)
class WidgetAdmin(admin.ModelAdmin):
    list_display = ['name', 'dashboard', 'tenant', 'type', 'data_source']
    list_filter = ['type']
    search_fields = ['name']


@admin.register(Report)
class ReportAdmin(admin.ModelAdmin):
    list_display = ['name', 'tenant', 'type', 'last_run_at', 'created_at']
    list_filter = ['type']
    search_fields = ['name']
