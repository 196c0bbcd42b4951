"""
Sales models.

A product catalog and quotes built from it. Quote totals are derived from
the line items by SalesService and stored on the quote.
"""
from decimal import Decimal

from django.conf import settings
from django.core.validators import MaxValueValidator, MinValueValidator
from django.db import models

from apps.core.models import TenantModel


class Product(TenantModel):
    """A product or service the tenant sells."""

    name = models.CharField(max_length=255)
    sku = models.CharField(max_length=64, blank=True)
    description = models.TextField(blank=True)
    category = models.CharField(max_length=100, blank=True, db_index=True)
    price = models.DecimalField(max_digits=14, decimal_places=2, validators=[MinValueValidator(0)])
    cost = models.DecimalField(max_digits=14, decimal_places=2, null=True, blank=True)
    currency = models.CharField(max_length=3, default='EUR')
    unit = models.CharField(max_length=30, blank=True)
    tax_rate = models.DecimalField(
        max_digits=5, decimal_places=2, default=Decimal('0'),
        validators=[MinValueValidator(0), MaxValueValidator(100)],
    )
    is_service = models.BooleanField(default=False)
    is_active = models.BooleanField(default=True)
    tags = models.JSONField(default=list, blank=True)

    class Meta(TenantModel.Meta):
        db_table = 'sales_products'
        constraints = [
            models.UniqueConstraint(
                fields=['tenant', 'sku'],
                condition=models.Q(deleted_at__isnull=True) & ~models.Q(sku=''),
                name='unique_active_product_sku',
            ),
        ]

    def __str__(self):
        return f"{self.name} ({self.sku})" if self.sku else self.name


class Quote(TenantModel):
    """A priced offer to a customer, numbered Q<year>-<seq> per tenant."""

    STATUS_CHOICES = [
        ('DRAFT', 'Draft'),
        ('SENT', 'Sent'),
        ('ACCEPTED', 'Accepted'),
        ('REJECTED', 'Rejected'),
        ('EXPIRED', 'Expired'),
    ]

    quote_number = models.CharField(max_length=20)
    title = models.CharField(max_length=255)
    description = models.TextField(blank=True)
    customer = models.ForeignKey(
        'crm.Customer', on_delete=models.SET_NULL, null=True, blank=True, related_name='quotes'
    )
    opportunity = models.ForeignKey(
        'crm.Opportunity', on_delete=models.SET_NULL, null=True, blank=True, related_name='quotes'
    )
    status = models.CharField(max_length=10, choices=STATUS_CHOICES, default='DRAFT', db_index=True)
    valid_until = models.DateField()
    currency = models.CharField(max_length=3, default='EUR')
    subtotal = models.DecimalField(max_digits=14, decimal_places=2, default=Decimal('0'))
    tax_amount = models.DecimalField(max_digits=14, decimal_places=2, default=Decimal('0'))
    discount_amount = models.DecimalField(max_digits=14, decimal_places=2, default=Decimal('0'))
    total_amount = models.DecimalField(max_digits=14, decimal_places=2, default=Decimal('0'))
    terms = models.TextField(blank=True)
    notes = models.TextField(blank=True)
    created_by = models.ForeignKey(
        settings.AUTH_USER_MODEL, on_delete=models.SET_NULL, null=True, blank=True, related_name='+'
    )

    class Meta(TenantModel.Meta):
        db_table = 'sales_quotes'
        constraints = [
            models.UniqueConstraint(fields=['tenant', 'quote_number'], name='unique_quote_number'),
        ]

    def __str__(self):
        return f"{self.quote_number} {self.title}"


class QuoteLineItem(TenantModel):
    quote = models.ForeignKey(Quote, on_delete=models.CASCADE, related_name='line_items')
    product = models.ForeignKey(
        Product, on_delete=models.SET_NULL, null=True, blank=True, related_name='quote_items'
    )
    description = models.CharField(max_length=255)
    quantity = models.DecimalField(max_digits=12, decimal_places=2, default=Decimal('1'))
    unit_price = models.DecimalField(max_digits=14, decimal_places=2)
    discount = models.DecimalField(max_digits=14, decimal_places=2, default=Decimal('0'))
    tax_rate = models.DecimalField(max_digits=5, decimal_places=2, default=Decimal('0'))
    total_price = models.DecimalField(max_digits=14, decimal_places=2, default=Decimal('0'))
    sort_order = models.PositiveIntegerField(default=0)

    class Meta(TenantModel.Meta):
        db_table = 'sales_quote_items'
        ordering = ['sort_order', 'created_at']

    def __str__(self):
        return f"{self.quantity} x {self.description}"
