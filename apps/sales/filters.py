"""
Query filters for the product catalog and quotes.
"""
import django_filters
from django_filters import rest_framework as filters

from apps.sales.models import Product, Quote


class ProductFilter(filters.FilterSet):
    min_price = django_filters.NumberFilter(field_name='price', lookup_expr='gte')
    max_price = django_filters.NumberFilter(field_name='price', lookup_expr='lte')

    class Meta:
        model = Product
        fields = ['category', 'is_service', 'is_active']


class QuoteFilter(filters.FilterSet):
    valid_from = django_filters.DateFilter(field_name='valid_until', lookup_expr='gte')
    valid_to = django_filters.DateFilter(field_name='valid_until', lookup_expr='lte')

    class Meta:
        model = Quote
        fields = ['status', 'customer', 'opportunity', 'created_by']
