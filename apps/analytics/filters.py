"""
Query filters for analytics listings.
"""
from django_filters import rest_framework as filters

from apps.analytics.models import Widget


class WidgetFilter(filters.FilterSet):

    class Meta:
        model = Widget
        fields = ['dashboard', 'type', 'data_source']
