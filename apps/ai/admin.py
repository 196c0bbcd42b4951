from django.contrib import admin

from apps.ai.models import Anomaly, NLPProcessor, NLPQuery, RLAction, RLAgent, RLEpisode


@admin.register(NLPProcessor)
class NLPProcessorAdmin(admin.ModelAdmin):
    list_display = ['name', 'processor_type', 'tenant', 'total_queries', 'avg_confidence', 'last_used_at']
    list_filter = ['processor_type', 'is_active']


@admin.register(NLPQuery)
class NLPQueryAdmin(admin.ModelAdmin):
    list_display = ['processor', 'tenant', 'confidence', 'processing_ms', 'created_at']
    readonly_fields = ['id', 'result', 'created_at']


@admin.register(Anomaly)
class AnomalyAdmin(admin.ModelAdmin):
    list_display = ['anomaly_type', 'severity', 'status', 'data_source', 'tenant', 'created_at']
    list_filter = ['anomaly_type', 'severity', 'status']
    search_fields = ['description', 'data_source']


@admin.register(RLAgent)
class RLAgentAdmin(admin.ModelAdmin):
    list_display = ['name', 'agent_type', 'environment', 'tenant', 'total_episodes', 'avg_reward']
    list_filter = ['agent_type', 'is_active']


admin.site.register(RLEpisode)
admin.site.register(RLAction)
