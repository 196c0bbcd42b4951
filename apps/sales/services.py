"""
Quote building and pricing.

Line total  = quantity x unit_price - discount
Line tax    = line total x tax_rate / 100
Quote total = subtotal + tax - discount_amount
"""
import logging
from decimal import ROUND_HALF_UP, Decimal

from django.db import transaction
from django.db.models import Count, Q, Sum
from django.utils import timezone

from apps.core.exceptions import ResourceConflict, ValidationError
from apps.sales.models import Quote, QuoteLineItem

logger = logging.getLogger(__name__)

CENT = Decimal('0.01')

EDITABLE_ITEM_STATUSES = ('DRAFT',)


def money(value):
    return Decimal(value).quantize(CENT, rounding=ROUND_HALF_UP)


def line_total(quantity, unit_price, discount=Decimal('0')):
    return money(Decimal(quantity) * Decimal(unit_price) - Decimal(discount))


class SalesService:

    @staticmethod
    def next_quote_number(tenant, today=None):
        """Q<year>-<seq>, seq counting every quote of the tenant in that year (deleted included)."""
        year = (today or timezone.localdate()).year
        prefix = f'Q{year}-'
        existing = Quote.objects_with_deleted.for_tenant(tenant).filter(quote_number__startswith=prefix)
        sequence = existing.count() + 1
        while existing.filter(quote_number=f'{prefix}{sequence:04d}').exists():
            sequence += 1
        return f'{prefix}{sequence:04d}'

    @staticmethod
    def _build_items(quote, items):
        built = []
        for index, item in enumerate(items):
            product = item.get('product')
            unit_price = item.get('unit_price')
            if unit_price is None:
                unit_price = product.price
            tax_rate = item.get('tax_rate')
            if tax_rate is None:
                tax_rate = product.tax_rate if product else Decimal('0')
            quantity = item.get('quantity') or Decimal('1')
            discount = item.get('discount') or Decimal('0')

            total = line_total(quantity, unit_price, discount)
            if total < 0:
                raise ValidationError(
                    'Line discount exceeds the line amount',
                    details={'field': 'items', 'index': index},
                )
            built.append(QuoteLineItem(
                tenant_id=quote.tenant_id,
                quote=quote,
                product=product,
                description=item.get('description') or product.name,
                quantity=quantity,
                unit_price=unit_price,
                discount=discount,
                tax_rate=tax_rate,
                total_price=total,
                sort_order=index,
            ))
        QuoteLineItem.objects.bulk_create(built)
        return built

    @staticmethod
    def recalculate(quote):
        """Refresh subtotal, tax and total from the stored line items."""
        subtotal = tax = Decimal('0')
        for item in quote.line_items.all():
            subtotal += item.total_price
            tax += item.total_price * item.tax_rate / 100

        quote.subtotal = money(subtotal)
        quote.tax_amount = money(tax)
        quote.total_amount = money(quote.subtotal + quote.tax_amount - quote.discount_amount)
        if quote.total_amount < 0:
            raise ValidationError('discount_amount exceeds the quote amount', details={'field': 'discount_amount'})
        quote.save(update_fields=['subtotal', 'tax_amount', 'total_amount', 'updated_at'])
        return quote

    @classmethod
    def create_quote(cls, tenant, user=None, items=(), **fields):
        """
        Create a numbered quote with its line items and totals.

        Raises:
            ValidationError: a discount larger than the amount it reduces
        """
        with transaction.atomic():
            quote = Quote.objects.create(
                tenant=tenant,
                quote_number=cls.next_quote_number(tenant),
                created_by=user if getattr(user, 'is_authenticated', False) else None,
                **fields,
            )
            cls._build_items(quote, items)
            cls.recalculate(quote)

        logger.info(
            "Quote created",
            extra={'quote_id': str(quote.id), 'tenant_id': str(tenant.id), 'items': len(items)}
        )
        return quote

    @classmethod
    def update_quote(cls, quote, items=None, **fields):
        """
        Update quote fields and, when given, replace every line item.

        Raises:
            ResourceConflict: items changed on a quote that is no longer a draft
        """
        if items is not None and quote.status not in EDITABLE_ITEM_STATUSES:
            raise ResourceConflict(
                f'Line items of a {quote.status} quote cannot be changed',
                details={'status': quote.status},
            )

        with transaction.atomic():
            for name, value in fields.items():
                setattr(quote, name, value)
            quote.save()
            if items is not None:
                quote.line_items.all().hard_delete()
                cls._build_items(quote, items)
            cls.recalculate(quote)
        return quote

    @staticmethod
    def expire_quotes(today=None):
        """Mark SENT quotes past valid_until as EXPIRED. Returns the count."""
        today = today or timezone.localdate()
        return Quote.objects.filter(status='SENT', valid_until__lt=today).update(
            status='EXPIRED', updated_at=timezone.now()
        )

    @staticmethod
    def summary(tenant):
        """Quote counts and amounts by status plus the active catalog size."""
        from apps.sales.models import Product

        by_status = {value: {'count': 0, 'total': '0.00'} for value, _ in Quote.STATUS_CHOICES}
        rows = (
            Quote.objects.for_tenant(tenant)
            .values('status')
            .annotate(count=Count('id'), total=Sum('total_amount'))
            .order_by('status')
        )
        for row in rows:
            by_status[row['status']] = {'count': row['count'], 'total': str(money(row['total'] or 0))}

        decided = by_status['ACCEPTED']['count'] + by_status['REJECTED']['count']
        products = Product.objects.for_tenant(tenant).aggregate(
            total=Count('id'), active=Count('id', filter=Q(is_active=True))
        )
        return {
            'quotes_by_status': by_status,
            'acceptance_rate': round(by_status['ACCEPTED']['count'] * 100.0 / decided, 1) if decided else None,
            'products': products,
            'generated_at': timezone.now().isoformat(),
        }
