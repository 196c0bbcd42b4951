"""
Serializers for the product catalog and quotes.
"""
from decimal import Decimal

from rest_framework import serializers

from apps.core.serializers import TenantRelatedField, UserSummaryField
from apps.crm.models import Customer, Opportunity
from apps.sales.models import Product, Quote, QuoteLineItem


def _currency(value):
    value = value.upper()
    if len(value) != 3 or not value.isalpha():
        raise serializers.ValidationError('currency must be a 3-letter ISO code')
    return value


class ProductSerializer(serializers.ModelSerializer):
    price = serializers.DecimalField(max_digits=14, decimal_places=2, min_value=Decimal('0'))
    tax_rate = serializers.DecimalField(max_digits=5, decimal_places=2, min_value=Decimal('0'),
                                        max_value=Decimal('100'), required=False)

    class Meta:
        model = Product
        fields = [
            'id', 'name', 'sku', 'description', 'category', 'price', 'cost', 'currency',
            'unit', 'tax_rate', 'is_service', 'is_active', 'tags', 'created_at', 'updated_at',
        ]
        read_only_fields = ['id', 'created_at', 'updated_at']

    def validate_currency(self, value):
        return _currency(value)

    def validate_sku(self, value):
        if not value:
            return value
        existing = Product.objects.for_tenant(self.context['tenant']).filter(sku=value)
        if self.instance is not None:
            existing = existing.exclude(pk=self.instance.pk)
        if existing.exists():
            raise serializers.ValidationError('A product with this SKU already exists')
        return value


class QuoteLineItemSerializer(serializers.ModelSerializer):

    class Meta:
        model = QuoteLineItem
        fields = [
            'id', 'product', 'description', 'quantity', 'unit_price', 'discount',
            'tax_rate', 'total_price', 'sort_order',
        ]
        read_only_fields = fields


class QuoteLineItemInputSerializer(serializers.Serializer):
    """One line of a quote. Price, tax rate and description default to the product's."""

    product = TenantRelatedField(queryset=Product.objects.all(), required=False, allow_null=True)
    description = serializers.CharField(max_length=255, required=False, allow_blank=True)
    quantity = serializers.DecimalField(max_digits=12, decimal_places=2, min_value=Decimal('0.01'),
                                        default=Decimal('1'))
    unit_price = serializers.DecimalField(max_digits=14, decimal_places=2, min_value=Decimal('0'),
                                          required=False)
    discount = serializers.DecimalField(max_digits=14, decimal_places=2, min_value=Decimal('0'),
                                        default=Decimal('0'))
    tax_rate = serializers.DecimalField(max_digits=5, decimal_places=2, min_value=Decimal('0'),
                                        max_value=Decimal('100'), required=False)

    def validate(self, attrs):
        if attrs.get('product') is None:
            missing = [f for f in ('description', 'unit_price') if attrs.get(f) in (None, '')]
            if missing:
                raise serializers.ValidationError(
                    {field: 'Required when no product is given' for field in missing}
                )
        return attrs


class QuoteSerializer(serializers.ModelSerializer):
    items = QuoteLineItemSerializer(source='line_items', many=True, read_only=True)
    created_by = UserSummaryField()

    class Meta:
        model = Quote
        fields = [
            'id', 'quote_number', 'title', 'description', 'customer', 'opportunity', 'status',
            'valid_until', 'currency', 'subtotal', 'tax_amount', 'discount_amount', 'total_amount',
            'terms', 'notes', 'items', 'created_by', 'created_at', 'updated_at',
        ]
        read_only_fields = fields


class QuoteWriteSerializer(serializers.ModelSerializer):
    """
    Create or update a quote.

    items is required on create. On update it replaces every line item and
    is only accepted while the quote is a DRAFT.
    """
    customer = TenantRelatedField(queryset=Customer.objects.all(), required=False, allow_null=True)
    opportunity = TenantRelatedField(queryset=Opportunity.objects.all(), required=False, allow_null=True)
    discount_amount = serializers.DecimalField(max_digits=14, decimal_places=2, min_value=Decimal('0'),
                                               required=False)
    items = QuoteLineItemInputSerializer(many=True, required=False)

    class Meta:
        model = Quote
        fields = [
            'title', 'description', 'customer', 'opportunity', 'status', 'valid_until',
            'currency', 'discount_amount', 'terms', 'notes', 'items',
        ]

    def validate_currency(self, value):
        return _currency(value)

    def validate_items(self, value):
        if not value:
            raise serializers.ValidationError('A quote needs at least one line item')
        return value

    def validate(self, attrs):
        if self.instance is None and 'items' not in attrs:
            raise serializers.ValidationError({'items': 'A quote needs at least one line item'})
        return attrs
