"""
Serializers for dashboards, widgets and reports.
"""
from rest_framework import serializers

from apps.analytics.models import Dashboard, Report, Widget
from apps.core.serializers import TenantRelatedField, UserSummaryField


def _json_object(value, name):
    if not isinstance(value, dict):
        raise serializers.ValidationError(f'{name} must be an object')
    return value


class WidgetSerializer(serializers.ModelSerializer):
    dashboard = TenantRelatedField(queryset=Dashboard.objects.all())

    class Meta:
        model = Widget
        fields = [
            'id', 'dashboard', 'name', 'type', 'data_source', 'config', 'position', 'size',
            'created_at', 'updated_at',
        ]
        read_only_fields = ['id', 'created_at', 'updated_at']

    def validate_config(self, value):
        return _json_object(value, 'config')

    def validate_position(self, value):
        return _json_object(value, 'position')

    def validate_size(self, value):
        return _json_object(value, 'size')


class DashboardSerializer(serializers.ModelSerializer):
    widgets = serializers.SerializerMethodField()
    owner = UserSummaryField()

    class Meta:
        model = Dashboard
        fields = [
            'id', 'name', 'description', 'layout', 'is_default', 'owner', 'widgets',
            'created_at', 'updated_at',
        ]
        read_only_fields = ['id', 'created_at', 'updated_at']

    def get_widgets(self, obj):
        return WidgetSerializer(obj.widgets.all(), many=True, context=self.context).data

    def validate_layout(self, value):
        return _json_object(value, 'layout')


class ReportSerializer(serializers.ModelSerializer):
    owner = UserSummaryField()

    class Meta:
        model = Report
        fields = [
            'id', 'name', 'description', 'type', 'config', 'data', 'last_run_at', 'owner',
            'created_at', 'updated_at',
        ]
        read_only_fields = ['id', 'last_run_at', 'created_at', 'updated_at']

    def validate_config(self, value):
        return _json_object(value, 'config')
