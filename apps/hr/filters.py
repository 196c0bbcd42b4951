"""
Query filters for HR list endpoints.
"""
import django_filters
from django_filters import rest_framework as filters

from apps.hr.models import LeaveRequest
from apps.hr.services import overlapping, period_bounds


class LeaveRequestFilter(filters.FilterSet):
    """
    ?status= ?type= ?employee= ?department= ?period=

    period keeps requests whose date range overlaps the named period.
    """

    department = django_filters.UUIDFilter(field_name='employee__department')
    period = django_filters.CharFilter(method='filter_period')

    class Meta:
        model = LeaveRequest
        fields = ['status', 'type', 'employee']

    def filter_period(self, queryset, name, value):
        start, end = period_bounds(value)
        return overlapping(queryset, start, end)
