"""
Sales API views.

Products and quotes are declared on top of apps.core.pipeline; quote writes
go through SalesService so totals are always derived from the line items.
"""
import logging

from drf_spectacular.utils import extend_schema, extend_schema_view
from rest_framework.response import Response
from rest_framework.views import APIView

from apps.core.permissions import HasTenantScopes, requires_scopes
from apps.core.pipeline import TenantResourceDetailView, TenantResourceListView
from apps.sales.filters import ProductFilter, QuoteFilter
from apps.sales.models import Product, Quote
from apps.sales.serializers import ProductSerializer, QuoteSerializer, QuoteWriteSerializer
from apps.sales.services import SalesService

logger = logging.getLogger(__name__)


class SalesResourceMixin:
    view_scope = 'sales:view'
    edit_scope = 'sales:edit'


# Products

@extend_schema_view(
    get=extend_schema(summary="List products", tags=['Sales']),
    post=extend_schema(summary="Create product", tags=['Sales']),
)
class ProductListView(SalesResourceMixin, TenantResourceListView):
    model = Product
    serializer_class = ProductSerializer
    audit_name = 'product'
    filterset_class = ProductFilter
    search_fields = ('name', 'sku', 'description')
    ordering_fields = ('name', 'price', 'created_at')


@extend_schema_view(
    get=extend_schema(summary="Get product", tags=['Sales']),
    put=extend_schema(summary="Update product", tags=['Sales']),
    patch=extend_schema(summary="Partially update product", tags=['Sales']),
    delete=extend_schema(summary="Delete product", tags=['Sales']),
)
class ProductDetailView(SalesResourceMixin, TenantResourceDetailView):
    model = Product
    serializer_class = ProductSerializer
    audit_name = 'product'


# Quotes

class QuoteResourceMixin(SalesResourceMixin):
    model = Quote
    serializer_class = QuoteSerializer
    write_serializer_class = QuoteWriteSerializer
    audit_name = 'quote'
    select_related = ('created_by',)

    def get_queryset(self):
        return super().get_queryset().prefetch_related('line_items')


@extend_schema_view(
    get=extend_schema(summary="List quotes", tags=['Sales']),
    post=extend_schema(summary="Create quote", request=QuoteWriteSerializer, tags=['Sales']),
)
class QuoteListView(QuoteResourceMixin, TenantResourceListView):
    filterset_class = QuoteFilter
    search_fields = ('quote_number', 'title', 'description')
    ordering_fields = ('created_at', 'valid_until', 'total_amount')

    def perform_create(self, serializer):
        return SalesService.create_quote(self.request.tenant, user=self.request.user,
                                         **serializer.validated_data)


@extend_schema_view(
    get=extend_schema(summary="Get quote", tags=['Sales']),
    put=extend_schema(summary="Update quote", request=QuoteWriteSerializer, tags=['Sales']),
    patch=extend_schema(summary="Partially update quote", request=QuoteWriteSerializer, tags=['Sales']),
    delete=extend_schema(summary="Delete quote", tags=['Sales']),
)
class QuoteDetailView(QuoteResourceMixin, TenantResourceDetailView):

    def perform_update(self, serializer):
        return SalesService.update_quote(serializer.instance, **serializer.validated_data)


class SalesSummaryView(APIView):
    """GET /v1/sales/summary"""
    permission_classes = [HasTenantScopes]

    @extend_schema(summary="Sales summary", responses={200: None}, tags=['Sales'])
    @requires_scopes('sales:view')
    def get(self, request):
        return Response(SalesService.summary(request.tenant))
