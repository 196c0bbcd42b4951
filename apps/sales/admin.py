from django.contrib import admin

from apps.sales.models import Product, Quote, QuoteLineItem


@admin.register(Product)
class ProductAdmin(admin.ModelAdmin):
    list_display = ['name', 'sku', 'tenant', 'category', 'price', 'currency', 'is_active']
    list_filter = ['is_active', 'is_service', 'category']
    search_fields = ['name', 'sku']


class QuoteLineItemInline(admin.TabularInline):
    model = QuoteLineItem
    extra = 0
    fields = ['sort_order', 'product', 'description', 'quantity', 'unit_price', 'discount', 'tax_rate',
              'total_price']
    readonly_fields = ['total_price']

    def has_add_permission(self, request, obj=None):
        return False


@admin.register(Quote)
class QuoteAdmin(admin.ModelAdmin):
    list_display = ['quote_number', 'title', 'tenant', 'status', 'total_amount', 'currency', 'valid_until']
    list_filter = ['status']
    search_fields = ['quote_number', 'title']
    inlines = [QuoteLineItemInline]
