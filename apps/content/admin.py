from django.contrib import admin

from apps.content.models import ContentProject, ContentTemplate


@admin.register(ContentTemplate)
class ContentTemplateAdmin(admin.ModelAdmin):
    list_display = ['name', 'content_type', 'tenant', 'usage_count', 'is_active']
    list_filter = ['content_type', 'is_active']
    search_fields = ['name']


@admin.register(ContentProject)
class ContentProjectAdmin(admin.ModelAdmin):
    list_display = ['title', 'template', 'tenant', 'status', 'generated_at']
    list_filter = ['status']
    search_fields = ['title']
