"""
Query filters for event and notification listings.
"""
import django_filters
from django_filters import rest_framework as filters

from apps.events.models import EventBus, EventType, RealTimeNotification


class EventFilter(filters.FilterSet):
    type = django_filters.ChoiceFilter(field_name='event_type', choices=EventType.choices)
    start_date = django_filters.IsoDateTimeFilter(field_name='created_at', lookup_expr='gte')
    end_date = django_filters.IsoDateTimeFilter(field_name='created_at', lookup_expr='lte')

    class Meta:
        model = EventBus
        fields = ['status', 'priority']


class NotificationFilter(filters.FilterSet):

    class Meta:
        model = RealTimeNotification
        fields = ['is_read', 'type', 'severity']
