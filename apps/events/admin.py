from django.contrib import admin

from apps.events.models import EventBus, EventCorrelation, RealTimeNotification


@admin.register(EventBus)
class EventBusAdmin(admin.ModelAdmin):
    list_display = ['event_name', 'event_type', 'status', 'priority', 'tenant', 'created_at']
    list_filter = ['event_type', 'status', 'priority']
    search_fields = ['event_name']
    readonly_fields = ['id', 'created_at', 'updated_at']


@admin.register(EventCorrelation)
class EventCorrelationAdmin(admin.ModelAdmin):
    list_display = ['correlation_id', 'tenant', 'created_at']
    search_fields = ['correlation_id']


@admin.register(RealTimeNotification)
class RealTimeNotificationAdmin(admin.ModelAdmin):
    list_display = ['title', 'type', 'severity', 'tenant', 'user', 'is_read', 'created_at']
    list_filter = ['type', 'severity', 'is_read']
    search_fields = ['title', 'message']
